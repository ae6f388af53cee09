"""logpile: normalize log events from several upstream shapes into one record."""

from logpile.adapter import convert_batch, from_fields, from_legacy, from_structured, normalize
from logpile.errors import ParseError, SourceClosedError
from logpile.hosts import HostCache, HostResolver, Resolution
from logpile.levels import Level, parse_level
from logpile.listener import CollectingListener, SourceListener, StatsListener
from logpile.models import ContentSelection, LegacyEvent, LogRecord, StructuredEvent
from logpile.source import LogSource

__all__ = [
    "CollectingListener",
    "ContentSelection",
    "HostCache",
    "HostResolver",
    "LegacyEvent",
    "Level",
    "LogRecord",
    "LogSource",
    "ParseError",
    "Resolution",
    "SourceClosedError",
    "SourceListener",
    "StatsListener",
    "StructuredEvent",
    "convert_batch",
    "from_fields",
    "from_legacy",
    "from_structured",
    "normalize",
    "parse_level",
]
