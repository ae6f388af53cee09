"""LogSource: converts raw events, batches the records and pushes them to listeners."""

import logging
import threading
import time
from typing import Iterable

from logpile.adapter import convert_batch
from logpile.errors import SourceClosedError
from logpile.hosts import HostResolver
from logpile.listener import SourceListener
from logpile.models import LogRecord

logger = logging.getLogger(__name__)


class LogSource:
    """Buffers records and hands them to listeners in batches.

    Two locks are involved. ``_lock`` guards the buffer, the listener list and
    the counters and is never held while a listener runs. ``_deliver_lock``
    lets one thread at a time drain the buffer, which keeps batches in order.
    Threads that publish or flush on a timer never wait for ``_deliver_lock``:
    if another thread is delivering, that thread picks up their records.
    """

    def __init__(self, name: str, host: str | None = None,
                 resolver: HostResolver | None = None,
                 batch_size: int = 100, flush_interval: float = 1.0):
        self._name = name
        self._host = host
        self._resolver = resolver
        self._batch_size = max(1, batch_size)
        self._flush_interval = flush_interval

        self._listeners: list[SourceListener] = []
        self._buffer: list[LogRecord] = []
        self._lock = threading.Lock()
        self._deliver_lock = threading.Lock()
        self._deliverer: threading.Thread | None = None
        self._last_flush = time.monotonic()
        self._closed = False
        self._close_pending = False
        self._notified = False
        self._delivered = 0
        self._rejected = 0

        self._stop_event = threading.Event()
        self._timer_thread = None
        if flush_interval and flush_interval > 0:
            self._timer_thread = threading.Thread(
                target=self._flush_timer, name=f"{name}-flush", daemon=True)
            self._timer_thread.start()

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def delivered_count(self) -> int:
        return self._delivered

    @property
    def rejected_count(self) -> int:
        return self._rejected

    def add_listener(self, listener: SourceListener):
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SourceListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def ingest(self, events: Iterable) -> int:
        """Convert raw upstream events and publish the ones that parse.

        Malformed events are logged and counted; they never block the rest of
        the batch. Returns the number of records accepted.
        """
        records, rejects = convert_batch(events, self._host, self._resolver)
        for event, error in rejects:
            self.reject(event, error)
        if records:
            self.publish(records)
        return len(records)

    def reject(self, event, error: Exception):
        with self._lock:
            self._rejected += 1
        logger.warning("%s: rejected event: %s", self._name, error)
        logger.debug("%s: rejected payload: %r", self._name, event)

    def publish(self, records: Iterable[LogRecord]):
        with self._lock:
            if self._closed:
                raise SourceClosedError(f"source {self._name} is closed")
            self._buffer.extend(records)
            full = len(self._buffer) >= self._batch_size
        if full:
            self._drain(timeout=0)

    def flush(self, timeout: float | None = None):
        """Deliver buffered records.

        With a *timeout*, gives up waiting for another delivering thread after
        that many seconds; that thread then delivers the records instead.
        """
        self._drain(timeout)

    def close(self, timeout: float | None = None):
        """Flush remaining records and notify listeners. Safe to call repeatedly.

        ``source_closed`` always follows the last ``add_events``. When called
        from inside a listener, or when *timeout* expires, the thread that is
        currently delivering completes the close.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_pending = True

        self._stop_event.set()
        if self._timer_thread is not None and self._timer_thread is not threading.current_thread():
            self._timer_thread.join(timeout=5)

        self._drain(timeout)

    def _drain(self, timeout: float | None):
        current = threading.current_thread()
        if self._deliverer is current:
            # Called from a listener; the running drain loop picks this up.
            return

        while True:
            if timeout is None:
                acquired = self._deliver_lock.acquire()
            elif timeout <= 0:
                acquired = self._deliver_lock.acquire(blocking=False)
            else:
                acquired = self._deliver_lock.acquire(timeout=timeout)
            if not acquired:
                return

            self._deliverer = current
            try:
                self._deliver_all()
            finally:
                self._deliverer = None
                self._deliver_lock.release()

            # Checked after releasing: a thread that failed to acquire the
            # lock above has already queued its records or close request.
            with self._lock:
                pending = bool(self._buffer)
                finish = self._close_pending and not pending
                if finish:
                    self._close_pending = False
            if finish:
                self._notify_closed()
                return
            if not pending:
                return
            timeout = 0

    def _deliver_all(self):
        """Drain the buffer batch by batch. Must be called with _deliver_lock held."""
        while True:
            with self._lock:
                if not self._buffer:
                    return
                batch = self._buffer[:]
                self._buffer.clear()
                self._last_flush = time.monotonic()
                self._delivered += len(batch)
                listeners = list(self._listeners)

            for listener in listeners:
                try:
                    listener.add_events(list(batch))
                except Exception:
                    logger.exception("%s: listener %r failed on add_events", self._name, listener)

            logger.debug("%s: delivered %d records to %d listener(s)",
                         self._name, len(batch), len(listeners))

    def _notify_closed(self):
        with self._lock:
            if self._notified:
                return
            self._notified = True
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener.source_closed()
            except Exception:
                logger.exception("%s: listener %r failed on close", self._name, listener)
        logger.info("%s closed: %d delivered, %d rejected",
                    self._name, self._delivered, self._rejected)

    def _flush_timer(self):
        """Background thread that flushes on timeout."""
        tick = min(self._flush_interval, 1.0)
        while not self._stop_event.wait(timeout=tick):
            with self._lock:
                elapsed = time.monotonic() - self._last_flush
                due = bool(self._buffer) and elapsed >= self._flush_interval
            if due:
                self._drain(timeout=0)
