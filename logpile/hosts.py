"""Memoized host display-name resolution with reverse DNS for IPv4 literals."""

import logging
import re
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

# Syntactic check only: octet ranges are not validated.
IPV4_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")

DEFAULT_DNS_TIMEOUT = 2.0
DNS_POOL_SIZE = 4

# Bounded so slow DNS cannot pile up lookup threads.
_DNS_POOL = ThreadPoolExecutor(max_workers=DNS_POOL_SIZE, thread_name_prefix="rdns")


def is_ipv4_literal(raw_host: str) -> bool:
    return IPV4_PATTERN.fullmatch(raw_host) is not None


@dataclass(frozen=True)
class Resolution:
    name: str
    resolved: bool   # False when the raw value was kept

    @classmethod
    def fallback(cls, raw_host: str) -> "Resolution":
        return cls(name=raw_host, resolved=False)


class HostCache:
    """Raw host -> display name. Entries are never evicted or replaced."""

    def __init__(self):
        self._hosts: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, raw_host: str) -> str | None:
        return self._hosts.get(raw_host)

    def put_if_absent(self, raw_host: str, name: str) -> str:
        """Store *name* unless a value already exists. Returns the stored value."""
        with self._lock:
            return self._hosts.setdefault(raw_host, name)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)

    def __contains__(self, raw_host) -> bool:
        return raw_host in self._hosts


def reverse_lookup(ip: str, timeout: float = DEFAULT_DNS_TIMEOUT) -> str:
    """Reverse-resolve *ip* on the shared lookup pool, giving up after *timeout* seconds.

    Raises TimeoutError when no answer arrives in time; resolver errors
    propagate unchanged.
    """
    future = _DNS_POOL.submit(socket.gethostbyaddr, ip)
    try:
        return future.result(timeout=timeout)[0]
    except FuturesTimeoutError:
        future.cancel()
        raise TimeoutError(f"reverse lookup of {ip} timed out after {timeout}s") from None


class HostResolver:
    """Resolves raw host identifiers through a shared HostCache.

    Concurrent calls for the same key may both perform the lookup, but the
    cache keeps whichever value landed first and every caller returns it.
    """

    def __init__(self, cache: HostCache | None = None,
                 backend: Callable[[str, float], str] | None = None,
                 timeout: float = DEFAULT_DNS_TIMEOUT):
        self._cache = cache if cache is not None else HostCache()
        self._backend = backend or reverse_lookup
        self._timeout = timeout

    @property
    def cache(self) -> HostCache:
        return self._cache

    def lookup(self, raw_host: str) -> Resolution:
        """Compute the display name for *raw_host* without touching the cache."""
        if not is_ipv4_literal(raw_host):
            return Resolution.fallback(raw_host)
        try:
            name = self._backend(raw_host, self._timeout)
        except Exception as e:
            # Any lookup failure keeps the raw value.
            logger.debug("Reverse lookup failed for %s: %s", raw_host, e)
            return Resolution.fallback(raw_host)
        if not name:
            return Resolution.fallback(raw_host)
        return Resolution(name=name, resolved=True)

    def resolve(self, raw_host: str) -> str:
        cached = self._cache.get(raw_host)
        if cached is not None:
            return cached

        resolution = self.lookup(raw_host)
        stored = self._cache.put_if_absent(raw_host, resolution.name)
        if resolution.resolved:
            logger.debug("Resolved host %s -> %s", raw_host, stored)
        return stored
