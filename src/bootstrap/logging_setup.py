"""
ロギング・トレーシングパイプラインの初期化ロジック。

root logger に対して以下の層を順に組み立てる。

1. フォーマット層 (常に有効、標準出力)
2. フィルタ層 (常に有効、reconfigure 許可時は差し替え可能)
3. スパン転記層 (テレメトリバックエンド選択時のみ)

フィルタ層はトレースプロバイダの Sampler からも参照され、スパンの記録可否も決める。

導入はプロセスにつき 1 回のみ。
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from contextlib import contextmanager
from typing import ClassVar, Iterator, Mapping, TextIO

from opentelemetry.sdk.trace import TracerProvider

from application.observability import reset_observability, use_telemetry_span
from infrastructure.telemetry import (
    TRACE,
    FilterParseError,
    FilterReloadHandle,
    LogFilter,
    ReloadableLogFilter,
    SpanEventHandler,
    StaticLogFilter,
    TelemetryManager,
)

from .config_models import SERVICE_NAME, TelemetryConfig
from .container import InvalidConfigurationError, LogPipeline, TelemetryAlreadyInstalledError
from .telemetry_setup import TelemetryBackendFactory

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"
LOG_FILTER_ENV = "LOG_FILTER"
PREINIT_FILTER = "info,httpx=warn"


class LogPipelineBuilder(LogPipeline):
    """
    プロセス全体のロギングシンクを導入するビルダー。
    """

    _installed: ClassVar[bool] = False
    _active: ClassVar["LogPipelineBuilder | None"] = None
    _install_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        *,
        backend_factory: TelemetryBackendFactory | None = None,
        stream: TextIO | None = None,
        root_logger: logging.Logger | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._backend_factory = backend_factory or TelemetryBackendFactory()
        self._stream = stream
        self._root_logger = root_logger or logging.getLogger()
        self._environ = environ
        self._handlers: list[logging.Handler] = []
        self._tracer_provider: TracerProvider | None = None

    @property
    def tracer_provider(self) -> TracerProvider | None:
        return self._tracer_provider

    def install(self, config: TelemetryConfig) -> FilterReloadHandle | None:
        """
        パイプラインを組み立てて root logger に導入する。

        Returns:
            reconfigure 許可時はフィルタ差し替え用のハンドル、それ以外は None。

        Raises:
            TelemetryAlreadyInstalledError: 既に導入済みの場合。
            TelemetryInitError: テレメトリバックエンドの初期化に失敗した場合。
            InvalidConfigurationError: ``LOG_FILTER`` が解析できない場合。
        """

        cls = type(self)
        with cls._install_lock:
            if cls._installed:
                raise TelemetryAlreadyInstalledError("ロギングパイプラインは既に導入されています。")

            floor = logging.INFO if config.allow_reconfigure else logging.WARNING
            initial = self._initial_filter(floor)

            reload_handle: FilterReloadHandle | None = None
            level_filter: StaticLogFilter | ReloadableLogFilter
            if config.allow_reconfigure:
                reloadable = ReloadableLogFilter(initial)
                reload_handle = FilterReloadHandle(reloadable, default_level=floor)
                level_filter = reloadable
            else:
                level_filter = StaticLogFilter(initial)

            # スパンもログと同じフィルタ式で間引く
            tracer_provider = self._backend_factory.build(config.telemetry, filter_source=level_filter)

            format_handler = logging.StreamHandler(self._stream or sys.stdout)
            format_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            format_handler.addFilter(level_filter)
            handlers: list[logging.Handler] = [format_handler]

            if tracer_provider is not None:
                TelemetryManager.configure(tracer_provider=tracer_provider, service_name=SERVICE_NAME)
                use_telemetry_span(TelemetryManager.span)
                bridge = SpanEventHandler()
                bridge.addFilter(level_filter)
                handlers.append(bridge)

            for handler in handlers:
                self._root_logger.addHandler(handler)
            self._root_logger.setLevel(TRACE)

            self._handlers = handlers
            self._tracer_provider = tracer_provider
            cls._installed = True
            cls._active = self

        logging.getLogger("hello_service.logging").info(
            "log pipeline installed: filter=%s reconfigurable=%s telemetry=%s",
            initial.describe(),
            config.allow_reconfigure,
            config.telemetry.type,
        )
        return reload_handle

    def shutdown(self) -> None:
        """バッチエクスポータを排出し、トレースプロバイダを停止する。"""

        if self._tracer_provider is not None:
            TelemetryManager.shutdown()
            self._tracer_provider = None

    def _initial_filter(self, floor: int) -> LogFilter:
        environ = os.environ if self._environ is None else self._environ
        expression = environ.get(LOG_FILTER_ENV, "")
        try:
            return LogFilter.parse(expression, default_level=floor)
        except FilterParseError as exc:
            raise InvalidConfigurationError(f"{LOG_FILTER_ENV} の解析に失敗しました: {exc}") from exc

    @classmethod
    def reset(cls) -> None:
        """
        導入済みのハンドラを取り外し、再導入できる状態へ戻す。テスト専用。
        """

        with cls._install_lock:
            active = cls._active
            if active is not None:
                for handler in active._handlers:
                    active._root_logger.removeHandler(handler)
                active._handlers = []
                active.shutdown()
                reset_observability()
            cls._active = None
            cls._installed = False


@contextmanager
def preinit_logging(stream: TextIO | None = None) -> Iterator[None]:
    """
    設定解決中のみ有効な一時的なロギング出力。

    導入前の root logger が WARNING 既定のままでも、解決経過を INFO で出力する。
    """

    root = logging.getLogger()
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(StaticLogFilter(LogFilter.parse(PREINIT_FILTER)))
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(TRACE)
    try:
        yield
    finally:
        root.removeHandler(handler)
        if not LogPipelineBuilder._installed:
            root.setLevel(previous_level)
