"""
テレメトリバックエンドの選択に応じて TracerProvider を構築するファクトリ。
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from opentelemetry.sdk.resources import SERVICE_NAME as RESOURCE_SERVICE_NAME
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON, DEFAULT_ON, Sampler

from infrastructure.telemetry import (
    FilterSource,
    LogFilterSampler,
    build_app_insight_exporter,
    build_jaeger_exporter,
    build_stdout_exporter,
    build_zipkin_exporter,
)

from .config_models import SERVICE_NAME, AppInsightTelemetry, TelemetrySelection
from .container import TelemetryInitError

LOGGER = logging.getLogger("hello_service.telemetry")

ExporterBuilder = Callable[[TelemetrySelection], SpanExporter]


def _default_builders() -> dict[str, ExporterBuilder]:
    return {
        "stdOut": lambda _: build_stdout_exporter(),
        "jaeger": lambda _: build_jaeger_exporter(),
        "zipkin": lambda _: build_zipkin_exporter(),
        "appInsight": _build_app_insight,
    }


def _build_app_insight(selection: TelemetrySelection) -> SpanExporter:
    if not isinstance(selection, AppInsightTelemetry):
        raise TypeError(f"appInsight 以外の選択が渡されました: {selection!r}")
    return build_app_insight_exporter(selection.instrumentation_key)


class TelemetryBackendFactory:
    """
    ``TelemetrySelection`` の ``type`` に応じてエクスポータ生成を委譲するディスパッチャ。

    stdOut は全件サンプリング・同期送出、その他のバックエンドはバッチ送出とする。
    """

    SIMPLE_PROCESSOR_TYPES = frozenset({"stdOut"})

    def __init__(
        self,
        builders: Mapping[str, ExporterBuilder] | None = None,
        *,
        service_name: str = SERVICE_NAME,
    ) -> None:
        self._builders = dict(builders) if builders is not None else _default_builders()
        self._service_name = service_name

    def build(
        self,
        selection: TelemetrySelection,
        *,
        filter_source: FilterSource | None = None,
    ) -> TracerProvider | None:
        """
        エクスポータを生成し、TracerProvider を組み立てる。

        ``filter_source`` を渡した場合、そのフィルタ式が許可しないスパンは記録しない。
        """

        if selection.type == "none":
            return None

        builder = self._builders.get(selection.type)
        if builder is None:
            raise TelemetryInitError(
                f"telemetry type '{selection.type}' に対応する初期化ロジックが見つかりません。"
            )

        try:
            exporter = builder(selection)
        except Exception as exc:
            raise TelemetryInitError(
                f"テレメトリバックエンド '{selection.type}' の初期化に失敗しました。"
            ) from exc

        resource = Resource.create({RESOURCE_SERVICE_NAME: self._service_name})
        processor: SpanProcessor
        simple = selection.type in self.SIMPLE_PROCESSOR_TYPES
        sampler: Sampler = ALWAYS_ON if simple else DEFAULT_ON
        if filter_source is not None:
            sampler = LogFilterSampler(filter_source, sampler)
        provider = TracerProvider(resource=resource, sampler=sampler)
        if simple:
            processor = SimpleSpanProcessor(exporter)
        else:
            processor = BatchSpanProcessor(exporter)
        provider.add_span_processor(processor)

        LOGGER.info("telemetry backend %s initialized", selection.type)
        return provider
