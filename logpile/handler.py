"""Stdlib logging handler that feeds in-process records into a LogSource."""

import logging

from logpile.adapter import structured_from_logging
from logpile.errors import SourceClosedError
from logpile.source import LogSource

_OWN_PREFIX = "logpile"

# Upper bound on how long flush/close wait for a delivery running on another
# thread; logging.shutdown calls both while holding the handler lock.
DELIVERY_TIMEOUT = 5.0


class SkipOwnRecords(logging.Filter):
    """Rejects records logged by this package, before the handler lock is taken."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        return not (name == _OWN_PREFIX or name.startswith(_OWN_PREFIX + "."))


class ListenerHandler(logging.Handler):
    def __init__(self, source: LogSource, level=logging.NOTSET):
        super().__init__(level)
        self._source = source
        self.addFilter(SkipOwnRecords())

    @property
    def source(self) -> LogSource:
        return self._source

    def emit(self, record: logging.LogRecord):
        if self._source.closed:
            return
        try:
            self._source.ingest([structured_from_logging(record)])
        except SourceClosedError:
            return
        except Exception:
            self.handleError(record)

    def flush(self):
        self._source.flush(timeout=DELIVERY_TIMEOUT)

    def close(self):
        try:
            self._source.close(timeout=DELIVERY_TIMEOUT)
        finally:
            super().close()
