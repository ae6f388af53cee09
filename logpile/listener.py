"""Consumer side of record delivery."""

import logging
import threading
from collections import Counter

from logpile.models import LogRecord

logger = logging.getLogger(__name__)


class SourceListener:
    """Receives record batches from a LogSource.

    ``add_events`` may be called any number of times, including zero, in the
    order the source produced the records. ``source_closed`` is called at most
    once and nothing is delivered after it.
    """

    def add_events(self, events: list[LogRecord]):
        raise NotImplementedError

    def source_closed(self):
        raise NotImplementedError


class CollectingListener(SourceListener):
    """Keeps every delivered record in memory."""

    def __init__(self):
        self._records: list[LogRecord] = []
        self._batches = 0
        self._closed = False
        self._lock = threading.Lock()

    def add_events(self, events: list[LogRecord]):
        with self._lock:
            self._records.extend(events)
            self._batches += 1

    def source_closed(self):
        with self._lock:
            self._closed = True

    @property
    def records(self) -> list[LogRecord]:
        with self._lock:
            return list(self._records)

    @property
    def batch_count(self) -> int:
        with self._lock:
            return self._batches

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed


class StatsListener(SourceListener):
    """Counts records per level and component; logs a summary when the source closes."""

    def __init__(self, name: str = "source"):
        self._name = name
        self._levels: Counter = Counter()
        self._components: Counter = Counter()
        self._total = 0
        self._lock = threading.Lock()

    def add_events(self, events: list[LogRecord]):
        with self._lock:
            for record in events:
                self._total += 1
                self._levels[record.level_name] += 1
                self._components[record.component or "-"] += 1
        logger.debug("%s: received %d records (total: %d)", self._name, len(events), self._total)

    def source_closed(self):
        summary = self.summary()
        logger.info("%s closed: %d records, levels=%s, components=%s",
                    self._name, summary["total"], summary["levels"], summary["components"])

    def summary(self) -> dict:
        with self._lock:
            return {
                "total": self._total,
                "levels": dict(self._levels),
                "components": dict(self._components),
            }
