"""
ロギング・トレーシング関連の公開API。
"""

from .exporters import (
    ExporterConfigurationError,
    build_app_insight_exporter,
    build_jaeger_exporter,
    build_stdout_exporter,
    build_zipkin_exporter,
)
from .log_filter import (
    OFF,
    TRACE,
    FilterParseError,
    FilterReloadHandle,
    LogFilter,
    ReloadableLogFilter,
    ReloadHandle,
    StaticLogFilter,
)
from .span_bridge import SpanEventHandler
from .span_filter import FilterSource, LogFilterSampler
from .telemetry_runtime import TelemetryManager

__all__ = [
    "OFF",
    "TRACE",
    "ExporterConfigurationError",
    "FilterParseError",
    "FilterReloadHandle",
    "FilterSource",
    "LogFilter",
    "LogFilterSampler",
    "ReloadHandle",
    "ReloadableLogFilter",
    "SpanEventHandler",
    "StaticLogFilter",
    "TelemetryManager",
    "build_app_insight_exporter",
    "build_jaeger_exporter",
    "build_stdout_exporter",
    "build_zipkin_exporter",
]
