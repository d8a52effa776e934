from __future__ import annotations

import io
import logging

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from application import telemetry_span
from bootstrap import (
    InvalidConfigurationError,
    JaegerTelemetry,
    LogPipelineBuilder,
    NoTelemetry,
    TelemetryAlreadyInstalledError,
    TelemetryBackendFactory,
    TelemetryConfig,
)

ROOT = "pipeline_test"


@pytest.fixture(autouse=True)
def _reset_pipeline():
    LogPipelineBuilder.reset()
    yield
    LogPipelineBuilder.reset()


def _builder(stream: io.StringIO, *, environ=None, backend_factory=None) -> LogPipelineBuilder:
    return LogPipelineBuilder(
        backend_factory=backend_factory or TelemetryBackendFactory(builders={}),
        stream=stream,
        root_logger=logging.getLogger(ROOT),
        environ=environ or {},
    )


def _emit_all_levels(name: str = f"{ROOT}.app") -> None:
    logger = logging.getLogger(name)
    logger.debug("debug - ok")
    logger.info("info  - ok")
    logger.warning("warn  - ok")


def test_fixed_pipeline_has_warn_floor_and_no_handle() -> None:
    stream = io.StringIO()

    handle = _builder(stream).install(TelemetryConfig(allow_reconfigure=False, telemetry=NoTelemetry()))
    _emit_all_levels()

    assert handle is None
    output = stream.getvalue()
    assert "warn  - ok" in output
    assert "info  - ok" not in output


def test_reconfigurable_pipeline_has_info_floor_and_reload_handle() -> None:
    stream = io.StringIO()

    handle = _builder(stream).install(TelemetryConfig(allow_reconfigure=True, telemetry=NoTelemetry()))
    _emit_all_levels()

    assert handle is not None
    assert "info  - ok" in stream.getvalue()
    assert "debug - ok" not in stream.getvalue()

    handle.apply_filter(f" debug , {ROOT}.quiet = error ")
    _emit_all_levels()
    _emit_all_levels(f"{ROOT}.quiet")

    assert "debug - ok" in stream.getvalue()
    assert f"{ROOT}.quiet: warn  - ok" not in stream.getvalue()


def test_install_happens_at_most_once() -> None:
    config = TelemetryConfig(allow_reconfigure=False, telemetry=NoTelemetry())
    _builder(io.StringIO()).install(config)

    with pytest.raises(TelemetryAlreadyInstalledError):
        _builder(io.StringIO()).install(config)

    assert len(logging.getLogger(ROOT).handlers) == 1


def test_log_filter_environment_is_layered_on_floor() -> None:
    stream = io.StringIO()
    builder = _builder(stream, environ={"LOG_FILTER": f"{ROOT}.chatty=debug"})

    builder.install(TelemetryConfig(allow_reconfigure=False, telemetry=NoTelemetry()))
    _emit_all_levels()
    _emit_all_levels(f"{ROOT}.chatty")

    output = stream.getvalue()
    assert f"{ROOT}.chatty: debug - ok" in output
    assert f"{ROOT}.app: info  - ok" not in output


def test_invalid_log_filter_environment_leaves_nothing_installed() -> None:
    config = TelemetryConfig(allow_reconfigure=False, telemetry=NoTelemetry())

    with pytest.raises(InvalidConfigurationError):
        _builder(io.StringIO(), environ={"LOG_FILTER": "info,broken=loud"}).install(config)

    assert _builder(io.StringIO()).install(config) is None


def test_telemetry_backend_receives_filtered_log_events() -> None:
    exporter = InMemorySpanExporter()
    factory = TelemetryBackendFactory(builders={"jaeger": lambda _: exporter})
    builder = _builder(io.StringIO(), backend_factory=factory)

    handle = builder.install(TelemetryConfig(allow_reconfigure=True, telemetry=JaegerTelemetry()))
    provider = builder.tracer_provider

    assert handle is not None
    assert provider is not None
    assert len(logging.getLogger(ROOT).handlers) == 2
    with provider.get_tracer("test").start_as_current_span("request"):
        _emit_all_levels()
    provider.force_flush()

    (span,) = exporter.get_finished_spans()
    assert [event.name for event in span.events] == ["info  - ok", "warn  - ok"]
    assert span.events[0].attributes["target"] == f"{ROOT}.app"


def _install_with_memory_exporter(*, allow_reconfigure: bool, environ=None):
    exporter = InMemorySpanExporter()
    factory = TelemetryBackendFactory(builders={"jaeger": lambda _: exporter})
    builder = _builder(io.StringIO(), environ=environ, backend_factory=factory)
    handle = builder.install(TelemetryConfig(allow_reconfigure=allow_reconfigure, telemetry=JaegerTelemetry()))
    return builder, handle, exporter


def test_filter_off_stops_span_export() -> None:
    builder, handle, exporter = _install_with_memory_exporter(allow_reconfigure=True)

    with telemetry_span("before.off"):
        pass
    handle.apply_filter("off")
    with telemetry_span("after.off"):
        _emit_all_levels()
    builder.tracer_provider.force_flush()

    assert [span.name for span in exporter.get_finished_spans()] == ["before.off"]


def test_span_targets_follow_filter_directives() -> None:
    builder, handle, exporter = _install_with_memory_exporter(allow_reconfigure=True)

    handle.apply_filter("warn,tracing=info")
    with telemetry_span("tracing.reconfigure"):
        pass
    with telemetry_span("request.hello"):
        pass
    builder.tracer_provider.force_flush()

    assert [span.name for span in exporter.get_finished_spans()] == ["tracing.reconfigure"]


def test_shutdown_drains_batched_spans() -> None:
    builder, _, exporter = _install_with_memory_exporter(allow_reconfigure=True)

    with telemetry_span("queued"):
        pass
    assert exporter.get_finished_spans() == ()

    builder.shutdown()

    assert [span.name for span in exporter.get_finished_spans()] == ["queued"]
    assert builder.tracer_provider is None
