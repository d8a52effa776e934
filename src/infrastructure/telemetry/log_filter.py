"""
ログ出力レベルを決めるフィルタ式と、実行時に差し替え可能な logging.Filter。

フィルタ式はカンマ区切りのディレクティブ列で、各ディレクティブは
``level`` / ``target`` / ``target=level`` のいずれか。``target`` は logger 名の
ドット区切りプレフィックスとして照合され、最も長く一致したものが優先される。
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Mapping, Protocol

TRACE = 5
OFF = logging.CRITICAL + 10

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(OFF, "OFF")

_LEVELS: Mapping[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": OFF,
}

_TARGET_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+(\.[A-Za-z0-9_\-]+)*$")


class FilterParseError(ValueError):
    """フィルタ式の構文が不正な場合の例外。"""


@dataclass(frozen=True)
class LogFilter:
    """
    解析済みのフィルタ式。

    Attributes:
        default_level: どの target にも一致しない logger に適用するレベル。
        targets: target 名からレベルへの対応。
    """

    default_level: int = logging.ERROR
    targets: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def parse(cls, expression: str, *, default_level: int = logging.ERROR) -> "LogFilter":
        """
        フィルタ式を解析する。解析前に空白文字はすべて除去する。

        Args:
            expression: ``"info,sqlx=warn"`` 形式のフィルタ式。
            default_level: 式にレベル単体のディレクティブが無い場合の既定レベル。

        Raises:
            FilterParseError: ディレクティブが解釈できない場合。
        """

        compact = "".join(expression.split())
        level = default_level
        targets: dict[str, int] = {}
        for directive in compact.split(","):
            if not directive:
                continue
            target, sep, raw_level = directive.partition("=")
            if not sep:
                bare_level = _LEVELS.get(target.lower())
                if bare_level is not None:
                    level = bare_level
                    continue
                # レベル指定の無い target は全レベルを通す
                raw_level = "trace"
            if not target or not _TARGET_PATTERN.match(target):
                raise FilterParseError(f"不正な target です: {target!r} (directive={directive!r})")
            target_level = _LEVELS.get(raw_level.lower())
            if target_level is None:
                raise FilterParseError(f"不正なレベルです: {raw_level!r} (directive={directive!r})")
            targets[target] = target_level
        return cls(default_level=level, targets=targets)

    def level_for(self, logger_name: str) -> int:
        name = logger_name
        while name:
            level = self.targets.get(name)
            if level is not None:
                return level
            name, _, _ = name.rpartition(".")
        return self.default_level

    def allows(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level_for(record.name)

    def describe(self) -> str:
        directives = [logging.getLevelName(self.default_level).lower()]
        directives.extend(
            f"{target}={logging.getLevelName(level).lower()}" for target, level in sorted(self.targets.items())
        )
        return ",".join(directives)


class StaticLogFilter(logging.Filter):
    """起動時に決めたフィルタ式を固定で適用する。"""

    def __init__(self, log_filter: LogFilter) -> None:
        super().__init__()
        self._filter = log_filter

    @property
    def current(self) -> LogFilter:
        return self._filter

    def filter(self, record: logging.LogRecord) -> bool:
        return self._filter.allows(record)


class ReloadableLogFilter(logging.Filter):
    """
    実行時にフィルタ式を差し替えられる logging.Filter。

    読み出し側はロックを取らず、``LogFilter`` への参照を 1 回だけ読む。
    差し替えは不変オブジェクトへの参照の付け替えのみで行う。
    """

    def __init__(self, log_filter: LogFilter) -> None:
        super().__init__()
        self._filter = log_filter
        self._lock = threading.Lock()

    @property
    def current(self) -> LogFilter:
        return self._filter

    def filter(self, record: logging.LogRecord) -> bool:
        return self._filter.allows(record)

    def reload(self, log_filter: LogFilter) -> None:
        with self._lock:
            self._filter = log_filter


class ReloadHandle(Protocol):
    """稼働中のパイプラインのフィルタ式を差し替える権限。"""

    def apply_filter(self, expression: str) -> None:
        ...


class FilterReloadHandle:
    """
    ``ReloadableLogFilter`` に束縛された ReloadHandle 実装。
    """

    def __init__(self, target: ReloadableLogFilter, *, default_level: int = logging.ERROR) -> None:
        self._target = target
        self._default_level = default_level

    @property
    def current(self) -> LogFilter:
        return self._target.current

    def apply_filter(self, expression: str) -> None:
        new_filter = LogFilter.parse(expression, default_level=self._default_level)
        self._target.reload(new_filter)
