"""
ログ出力と同じフィルタ式でスパンの記録可否を決める Sampler。

スパン名を target として照合し、スパンは INFO レベルとして扱う。
フィルタは評価のたびに参照し直すため、実行時の差し替えは以降に開始するスパンへ反映される。
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from opentelemetry.context import Context
from opentelemetry.sdk.trace.sampling import (
    DEFAULT_ON,
    Decision,
    Sampler,
    SamplingResult,
)
from opentelemetry.trace import Link, SpanKind
from opentelemetry.trace.span import TraceState
from opentelemetry.util.types import Attributes

from .log_filter import LogFilter

SPAN_LEVEL = logging.INFO


class FilterSource(Protocol):
    @property
    def current(self) -> LogFilter:
        ...


class LogFilterSampler(Sampler):
    """
    ``FilterSource`` が許可したスパンのみ ``delegate`` に判定を委ねる。
    """

    def __init__(self, source: FilterSource, delegate: Sampler = DEFAULT_ON) -> None:
        self._source = source
        self._delegate = delegate

    def should_sample(
        self,
        parent_context: Optional[Context],
        trace_id: int,
        name: str,
        kind: Optional[SpanKind] = None,
        attributes: Attributes = None,
        links: Optional[Sequence[Link]] = None,
        trace_state: Optional[TraceState] = None,
    ) -> SamplingResult:
        if SPAN_LEVEL < self._source.current.level_for(name):
            return SamplingResult(Decision.DROP, None, trace_state)
        return self._delegate.should_sample(
            parent_context,
            trace_id,
            name,
            kind=kind,
            attributes=attributes,
            links=links,
            trace_state=trace_state,
        )

    def get_description(self) -> str:
        return f"LogFilterSampler{{{self._delegate.get_description()}}}"
