"""
稼働中のログフィルタ式を差し替えるユースケース。
"""

from __future__ import annotations

import enum
import logging

from infrastructure.telemetry import TRACE, ReloadHandle

from .observability import telemetry_span

LOGGER = logging.getLogger("hello_service.tracing")


class ReconfigureDisabledError(RuntimeError):
    """reconfigure が許可されていない状態で差し替えを要求された。"""


class ReconfigurationState(str, enum.Enum):
    FIXED = "fixed"
    RECONFIGURABLE = "reconfigurable"


class ReconfigurationEndpoint:
    """
    起動時に渡された ReloadHandle の有無で状態が決まり、以後は変化しない。

    - FIXED: 差し替え要求は常に ``ReconfigureDisabledError``。
    - RECONFIGURABLE: ハンドルへ委譲する。解析エラー時は直前のフィルタが維持される。
    """

    def __init__(self, reload_handle: ReloadHandle | None) -> None:
        self._reload_handle = reload_handle

    @property
    def state(self) -> ReconfigurationState:
        if self._reload_handle is None:
            return ReconfigurationState.FIXED
        return ReconfigurationState.RECONFIGURABLE

    def reconfigure(self, expression: str) -> None:
        """
        Raises:
            ReconfigureDisabledError: FIXED 状態の場合。
            FilterParseError: フィルタ式が解析できない場合。
        """

        LOGGER.log(TRACE, "reconfigure requested: %r", expression)
        if self._reload_handle is None:
            raise ReconfigureDisabledError("Trace reconfigure is not enabled")

        with telemetry_span("tracing.reconfigure", {"filter": expression}):
            self._reload_handle.apply_filter(expression)
        LOGGER.warning("log filter reconfigured: %s", "".join(expression.split()))
