"""Exceptions raised while building and delivering log records."""


class ParseError(ValueError):
    """A single upstream event could not be turned into a LogRecord."""


class SourceClosedError(RuntimeError):
    """Records were published to a source after it was closed."""
