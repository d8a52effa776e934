"""
logging のレコードを OpenTelemetry のスパンイベントへ転記するハンドラ。
"""

from __future__ import annotations

import logging

from opentelemetry import trace


class SpanEventHandler(logging.Handler):
    """
    現在アクティブなスパンに対し、ログレコードをイベントとして追加する。

    記録中のスパンが無い場合は何もしない。
    """

    def emit(self, record: logging.LogRecord) -> None:
        span = trace.get_current_span()
        if not span.is_recording():
            return
        try:
            attributes: dict[str, str | int] = {
                "level": record.levelname,
                "target": record.name,
                "code.filepath": record.pathname,
                "code.lineno": record.lineno,
            }
            span.add_event(record.getMessage(), attributes=attributes)
            if record.exc_info and record.exc_info[1] is not None:
                span.record_exception(record.exc_info[1])
        except Exception:  # noqa: BLE001 - logging.Handler 規約
            self.handleError(record)
