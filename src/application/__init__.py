"""
アプリケーション層の公開API。
"""

from .observability import reset_observability, telemetry_span, use_telemetry_span
from .reconfiguration import ReconfigurationEndpoint, ReconfigurationState, ReconfigureDisabledError

__all__ = [
    "ReconfigurationEndpoint",
    "ReconfigurationState",
    "ReconfigureDisabledError",
    "reset_observability",
    "telemetry_span",
    "use_telemetry_span",
]
