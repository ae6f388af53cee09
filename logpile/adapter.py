"""Convert upstream log events into canonical LogRecords.

Three shapes are supported, one free function each:

  LegacyEvent      -> from_legacy      (already rendered text)
  StructuredEvent  -> from_structured  (exception object rendered here)
  Mapping[str,str] -> from_fields      (flattened textual field map)

All three finish through the same host and component resolution.
"""

import logging
import re
import traceback
from typing import Any, Iterable, Mapping

from logpile import mdc
from logpile.components import COMPONENT_KEYS, component_from_mapping, resolve_component
from logpile.errors import ParseError
from logpile.hosts import HostResolver
from logpile.levels import parse_level
from logpile.models import LegacyEvent, LogRecord, StructuredEvent

logger = logging.getLogger(__name__)

FRAME_PREFIX = "    at "
REQUIRED_FIELDS = ("timestamp", "logger", "level", "message", "thread")

_TIMESTAMP_PATTERN = re.compile(r"[+-]?\d+")


def _display_host(host: str | None, resolver: HostResolver | None) -> str | None:
    if host is None:
        return None
    if resolver is None:
        return host
    return resolver.resolve(host)


def exception_type_name(exc: BaseException) -> str:
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def render_throwable(exc: BaseException) -> tuple[str, ...]:
    """Render an exception as ``<type>: <message>`` followed by one line per frame.

    Frames are listed innermost first, i.e. the frame that raised comes right
    after the header line.
    """
    lines = [f"{exception_type_name(exc)}: {exc}"]
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    for frame in reversed(frames):
        lines.append(f"{FRAME_PREFIX}{frame.filename}:{frame.lineno} in {frame.name}")
    return tuple(lines)


def split_throwable(text: str | None) -> tuple[str, ...] | None:
    """Split a newline-joined trace into lines.

    A newline inside a single frame description cannot be told apart from a
    frame boundary and will produce two lines.
    """
    if not text:
        return None
    return tuple(line.rstrip("\r") for line in text.split("\n"))


def parse_timestamp(raw) -> int:
    if raw is None:
        raise ParseError("timestamp is missing")
    text = str(raw).strip()
    if not _TIMESTAMP_PATTERN.fullmatch(text):
        raise ParseError(f"timestamp is not numeric: {raw!r}")
    return int(text)


def from_legacy(event: LegacyEvent, host: str | None = None,
                resolver: HostResolver | None = None) -> LogRecord:
    throwable = event.throwable_lines
    return LogRecord(
        timestamp=event.timestamp,
        logger_name=event.logger_name,
        level=parse_level(event.level),
        message=event.rendered_message,
        thread_name=event.thread_name,
        host=_display_host(host, resolver),
        component=resolve_component(event.get_mdc),
        stack_lines=tuple(throwable) if throwable is not None else None,
    )


def from_structured(event: StructuredEvent, host: str | None = None,
                    resolver: HostResolver | None = None) -> LogRecord:
    # Re-parse by name so level enums from other producers map cleanly.
    level = parse_level(event.level_name)
    stack_lines = render_throwable(event.thrown) if event.thrown is not None else None

    return LogRecord(
        timestamp=event.millis,
        logger_name=event.logger_name,
        level=level,
        message=event.message,
        thread_name=event.thread_name,
        host=_display_host(host, resolver),
        component=component_from_mapping(event.context_map),
        stack_lines=stack_lines,
    )


def from_fields(fields: Mapping[str, Any], host: str | None = None,
                resolver: HostResolver | None = None) -> LogRecord:
    missing = [key for key in REQUIRED_FIELDS if fields.get(key) is None]
    if missing:
        raise ParseError(f"missing required fields: {', '.join(missing)}")

    timestamp = parse_timestamp(fields["timestamp"])
    level = parse_level(fields["level"])
    throwable = fields.get("throwable")

    return LogRecord(
        timestamp=timestamp,
        logger_name=str(fields["logger"]),
        level=level,
        message=str(fields["message"]),
        thread_name=str(fields["thread"]),
        host=_display_host(host, resolver),
        component=component_from_mapping(fields),
        stack_lines=split_throwable(str(throwable)) if throwable is not None else None,
    )


def normalize(event, host: str | None = None,
              resolver: HostResolver | None = None) -> LogRecord:
    """Dispatch *event* to the converter for its shape."""
    if isinstance(event, LegacyEvent):
        return from_legacy(event, host, resolver)
    if isinstance(event, StructuredEvent):
        return from_structured(event, host, resolver)
    if isinstance(event, Mapping):
        return from_fields(event, host, resolver)
    raise ParseError(f"unsupported event type: {type(event).__name__}")


def convert_batch(events: Iterable, host: str | None = None,
                  resolver: HostResolver | None = None
                  ) -> tuple[list[LogRecord], list[tuple[Any, ParseError]]]:
    """Convert each event independently. Returns (records, rejects)."""
    records: list[LogRecord] = []
    rejects: list[tuple[Any, ParseError]] = []
    for event in events:
        try:
            records.append(normalize(event, host, resolver))
        except ParseError as e:
            rejects.append((event, e))
    return records, rejects


def structured_from_logging(record: logging.LogRecord) -> StructuredEvent:
    """Build a StructuredEvent from a stdlib logging record.

    The context map is the current diagnostic context overlaid with any
    component keys passed through ``extra=``.
    """
    context = mdc.snapshot()
    for key in COMPONENT_KEYS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value

    thrown = record.exc_info[1] if record.exc_info else None

    return StructuredEvent(
        millis=int(record.created * 1000),
        logger_name=record.name,
        level_name=record.levelname,
        message=record.getMessage(),
        thread_name=record.threadName or str(record.thread),
        context_map=context,
        thrown=thrown,
    )
