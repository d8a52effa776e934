"""
アプリケーション層から利用する観測性ユーティリティ。

Infrastructure 層で実際のトレーシング実装を登録するまでは no-op として動作する。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Mapping

_telemetry_span_factory: (
    Callable[[str, Mapping[str, object] | None], ContextManager[object]] | None
) = None


def use_telemetry_span(
    factory: Callable[[str, Mapping[str, object] | None], ContextManager[object]] | None,
) -> None:
    """
    factory は (name: str, attributes: Mapping[str, object] | None) -> context manager を返す callable。
    """

    global _telemetry_span_factory
    _telemetry_span_factory = factory


@contextmanager
def telemetry_span(name: str, attributes: Mapping[str, object] | None = None):
    if _telemetry_span_factory is None:
        yield None
        return
    with _telemetry_span_factory(name, attributes):
        yield None


def reset_observability() -> None:
    use_telemetry_span(None)
