"""Canonical log levels and the shared level-name parser."""

from enum import IntEnum

from logpile.errors import ParseError


class Level(IntEnum):
    TRACE = 5000
    DEBUG = 10000
    INFO = 20000
    WARN = 30000
    ERROR = 40000
    FATAL = 50000

    def __str__(self) -> str:
        return self.name


# Names used by the stdlib logging module
_ALIASES = {
    "WARNING": Level.WARN,
    "CRITICAL": Level.FATAL,
}


def parse_level(text) -> Level:
    """Map a level name onto the closed set.

    Matching is case-insensitive and ignores surrounding whitespace. Unknown
    names raise ParseError instead of defaulting to INFO.
    """
    if isinstance(text, Level):
        return text
    if text is None:
        raise ParseError("level is missing")

    name = str(text).strip().upper()
    if name in Level.__members__:
        return Level[name]
    if name in _ALIASES:
        return _ALIASES[name]
    raise ParseError(f"unrecognized level: {text!r}")
