"""
トレースバックエンドごとの SpanExporter を生成するユーティリティ。

エンドポイントは各エクスポータが標準の ``OTEL_EXPORTER_*`` 環境変数から解決する。
"""

from __future__ import annotations

import sys
from typing import TextIO

from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.zipkin.json import ZipkinExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SpanExporter


class ExporterConfigurationError(ValueError):
    """エクスポータの設定値が不正な場合の例外。"""


def build_stdout_exporter(*, out: TextIO | None = None) -> SpanExporter:
    return ConsoleSpanExporter(out=out or sys.stdout)


def build_jaeger_exporter() -> SpanExporter:
    # Jaeger は OTLP を直接受け付ける (既定 localhost:4317)
    return OTLPSpanExporter()


def build_zipkin_exporter() -> SpanExporter:
    return ZipkinExporter()


def build_app_insight_exporter(instrumentation_key: str) -> SpanExporter:
    if not instrumentation_key:
        raise ExporterConfigurationError("appInsight.instrumentation_key は非空の文字列である必要があります。")

    from azure.monitor.opentelemetry.exporter import AzureMonitorTraceExporter

    return AzureMonitorTraceExporter(connection_string=f"InstrumentationKey={instrumentation_key}")
