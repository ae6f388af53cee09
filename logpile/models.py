"""Canonical LogRecord plus the upstream event shapes it is built from."""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from logpile import mdc
from logpile.errors import ParseError
from logpile.levels import Level


class ContentSelection(Enum):
    """Include/exclude flag handed to downstream filters. Not used here."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class LogRecord:
    timestamp: int                 # ms since epoch
    logger_name: str
    level: Level
    message: str
    thread_name: str
    host: str | None = None
    component: str | None = None
    stack_lines: tuple[str, ...] | None = None

    def __post_init__(self):
        for name in ("timestamp", "logger_name", "message", "thread_name"):
            if getattr(self, name) is None:
                raise ParseError(f"missing required field: {name}")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            try:
                millis = int(str(self.timestamp).strip())
            except ValueError:
                raise ParseError(f"timestamp is not an integer: {self.timestamp!r}") from None
            object.__setattr__(self, "timestamp", millis)
        if not isinstance(self.level, Level):
            raise ParseError(f"level must be a Level, got {self.level!r}")
        if self.stack_lines is not None and not isinstance(self.stack_lines, tuple):
            object.__setattr__(self, "stack_lines", tuple(self.stack_lines))

    @property
    def level_name(self) -> str:
        return self.level.name

    @property
    def has_stack(self) -> bool:
        return bool(self.stack_lines)


@dataclass(frozen=True)
class LegacyEvent:
    """Append-style event: everything is already rendered to text."""

    timestamp: int
    logger_name: str
    level: Level | str
    rendered_message: str
    thread_name: str
    throwable_lines: tuple[str, ...] | None = None
    mdc: Mapping[str, Any] = field(default_factory=dict)

    def get_mdc(self, key: str):
        return self.mdc.get(key)

    @classmethod
    def capture(cls, logger_name: str, level: Level | str, message: str,
                throwable_lines=None) -> "LegacyEvent":
        """Create an event stamped with the current time, thread and diagnostic context."""
        return cls(
            timestamp=int(time.time() * 1000),
            logger_name=logger_name,
            level=level,
            rendered_message=message,
            thread_name=threading.current_thread().name,
            throwable_lines=tuple(throwable_lines) if throwable_lines is not None else None,
            mdc=mdc.snapshot(),
        )


@dataclass(frozen=True)
class StructuredEvent:
    millis: int
    logger_name: str
    level_name: str
    message: str                   # already formatted
    thread_name: str
    context_map: Mapping[str, Any] = field(default_factory=dict)
    thrown: BaseException | None = None
