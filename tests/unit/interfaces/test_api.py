from __future__ import annotations

import logging

from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind

from application import ReconfigurationEndpoint
from bootstrap import Config, CoreConfig, NoTelemetry, TelemetryConfig
from infrastructure.telemetry import FilterReloadHandle, LogFilter, ReloadableLogFilter
from interfaces.api import create_api_app
from interfaces.api.deps import ApiDependencies, configure_dependencies


def _config(*, allow_reconfigure: bool) -> Config:
    return Config(
        core=CoreConfig(slot="blue", stage="dev"),
        tracing=TelemetryConfig(allow_reconfigure=allow_reconfigure, telemetry=NoTelemetry()),
        sql_connection_string="Server=test",
    )


def _client(config: Config, endpoint: ReconfigurationEndpoint) -> TestClient:
    configure_dependencies(ApiDependencies(config=config, reconfiguration=endpoint))
    return TestClient(create_api_app())


def test_get_config_returns_resolved_config() -> None:
    client = _client(_config(allow_reconfigure=False), ReconfigurationEndpoint(None))

    response = client.get("/hello/config")

    assert response.status_code == 200
    body = response.json()
    assert body["core"] == {"slot": "blue", "stage": "dev", "shared_keyvault": None, "private_keyvault": None}
    assert body["FullSqlCns"] == "Server=test"
    assert body["tracing"]["telemetry"] == {"type": "none"}


def test_reconfigure_is_rejected_when_disabled() -> None:
    client = _client(_config(allow_reconfigure=False), ReconfigurationEndpoint(None))

    response = client.put("/tracing/config", json={"filter": "debug"})

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Trace reconfigure is not enabled"
    assert client.get("/hello/config").status_code == 200


def test_reconfigure_swaps_filter() -> None:
    reloadable = ReloadableLogFilter(LogFilter.parse("info"))
    endpoint = ReconfigurationEndpoint(FilterReloadHandle(reloadable, default_level=logging.INFO))
    client = _client(_config(allow_reconfigure=True), endpoint)

    response = client.put("/tracing/config", json={"filter": " warn , sqlx = debug "})

    assert response.status_code == 200
    assert reloadable.current == LogFilter.parse("warn,sqlx=debug")


def test_reconfigure_reports_parse_errors_as_plain_text() -> None:
    reloadable = ReloadableLogFilter(LogFilter.parse("info"))
    endpoint = ReconfigurationEndpoint(FilterReloadHandle(reloadable))
    client = _client(_config(allow_reconfigure=True), endpoint)

    response = client.put("/tracing/config", json={"filter": "info,sqlx=loud"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert "loud" in response.text
    assert reloadable.current == LogFilter.parse("info")


def test_reconfigure_requires_filter_field() -> None:
    client = _client(_config(allow_reconfigure=True), ReconfigurationEndpoint(None))

    response = client.put("/tracing/config", json={"level": "debug"})

    assert response.status_code == 422


def test_requests_produce_server_spans_when_tracing_is_active() -> None:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    configure_dependencies(
        ApiDependencies(config=_config(allow_reconfigure=False), reconfiguration=ReconfigurationEndpoint(None))
    )
    client = TestClient(create_api_app(tracer_provider=provider))

    response = client.get("/hello/config")

    assert response.status_code == 200
    server_spans = [span for span in exporter.get_finished_spans() if span.kind is SpanKind.SERVER]
    assert len(server_spans) == 1
    assert "/hello/config" in server_spans[0].name
