from __future__ import annotations

import io
import logging

import pytest

from application import ReconfigurationEndpoint, ReconfigurationState, ReconfigureDisabledError
from bootstrap import LogPipelineBuilder, NoTelemetry, TelemetryBackendFactory, TelemetryConfig
from infrastructure.telemetry import (
    FilterParseError,
    FilterReloadHandle,
    LogFilter,
    ReloadableLogFilter,
)

ROOT = "reconfigure_test"


class RecordingHandle:
    def __init__(self) -> None:
        self.expressions: list[str] = []

    def apply_filter(self, expression: str) -> None:
        self.expressions.append(expression)


def _record(level: int) -> logging.LogRecord:
    return logging.LogRecord("app", level, __file__, 1, "message", None, None)


def test_state_is_decided_by_handle_presence() -> None:
    assert ReconfigurationEndpoint(None).state is ReconfigurationState.FIXED
    assert ReconfigurationEndpoint(RecordingHandle()).state is ReconfigurationState.RECONFIGURABLE


@pytest.fixture()
def fixed_pipeline():
    LogPipelineBuilder.reset()
    stream = io.StringIO()
    builder = LogPipelineBuilder(
        backend_factory=TelemetryBackendFactory(builders={}),
        stream=stream,
        root_logger=logging.getLogger(ROOT),
        environ={},
    )
    handle = builder.install(TelemetryConfig(allow_reconfigure=False, telemetry=NoTelemetry()))
    yield handle, stream
    LogPipelineBuilder.reset()


def _emit_and_capture(stream: io.StringIO) -> list[str]:
    start = stream.tell()
    logger = logging.getLogger(f"{ROOT}.app")
    logger.debug("debug - ok")
    logger.info("info  - ok")
    logger.warning("warn  - ok")
    stream.seek(start)
    return [line.split(": ", 1)[1] for line in stream.read().splitlines()]


@pytest.mark.parametrize("expression", ["debug", "info,sqlx=warn", "not=a=filter", ""])
def test_fixed_endpoint_always_fails_and_keeps_levels(fixed_pipeline, expression: str) -> None:
    handle, stream = fixed_pipeline
    endpoint = ReconfigurationEndpoint(handle)
    before = _emit_and_capture(stream)

    with pytest.raises(ReconfigureDisabledError):
        endpoint.reconfigure(expression)

    assert before == ["warn  - ok"]
    assert _emit_and_capture(stream) == before
    assert endpoint.state is ReconfigurationState.FIXED


def test_reconfigurable_endpoint_delegates_to_handle() -> None:
    handle = RecordingHandle()
    endpoint = ReconfigurationEndpoint(handle)

    endpoint.reconfigure(" info , sqlx = warn ")

    assert handle.expressions == [" info , sqlx = warn "]


def test_reconfigurable_endpoint_applies_filter_idempotently() -> None:
    reloadable = ReloadableLogFilter(LogFilter.parse("info"))
    endpoint = ReconfigurationEndpoint(FilterReloadHandle(reloadable, default_level=logging.INFO))

    endpoint.reconfigure("debug,sqlx=warn")
    first = reloadable.current
    endpoint.reconfigure("debug,sqlx=warn")

    assert reloadable.current == first
    assert reloadable.filter(_record(logging.DEBUG))


def test_parse_error_propagates_and_previous_filter_survives() -> None:
    reloadable = ReloadableLogFilter(LogFilter.parse("info"))
    endpoint = ReconfigurationEndpoint(FilterReloadHandle(reloadable))
    before = reloadable.current

    with pytest.raises(FilterParseError):
        endpoint.reconfigure("info,sqlx=")

    assert reloadable.current is before
