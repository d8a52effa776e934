"""
OpenTelemetry ランタイムの保持とスパン生成ヘルパ。
"""

from __future__ import annotations

import atexit
import logging
from contextlib import contextmanager
from typing import Mapping

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

LOGGER = logging.getLogger("hello_service.telemetry")


class TelemetryManager:
    _tracer_provider: TracerProvider | None = None
    _tracer = trace.get_tracer(__name__)
    _configured = False
    _atexit_registered = False

    @classmethod
    def configure(cls, *, tracer_provider: TracerProvider, service_name: str) -> None:
        trace.set_tracer_provider(tracer_provider)
        cls._tracer_provider = tracer_provider
        cls._tracer = tracer_provider.get_tracer(service_name)
        cls._configured = True

        if not cls._atexit_registered:
            atexit.register(cls.shutdown)
            cls._atexit_registered = True

    @classmethod
    def shutdown(cls) -> None:
        """
        バッチエクスポータに残っているスパンを送出してからプロバイダを停止する。
        """

        provider = cls._tracer_provider
        if provider is None:
            return
        cls._tracer_provider = None
        cls._tracer = trace.get_tracer(__name__)
        cls._configured = False
        if not provider.force_flush():
            LOGGER.warning("Telemetry flush did not complete before timeout")
        provider.shutdown()

    @classmethod
    @contextmanager
    def span(cls, name: str, attributes: Mapping[str, object] | None = None):
        if not cls._configured:
            yield None
            return
        with cls._tracer.start_as_current_span(name) as span:
            if attributes:
                for key, value in attributes.items():
                    if isinstance(value, (str, bool, int, float)):
                        span.set_attribute(key, value)
                    else:
                        span.set_attribute(key, str(value))
            yield span

