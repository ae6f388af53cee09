"""Tests for host resolution and the host cache."""

import socket
import threading
import time

import pytest

from logpile.hosts import (
    HostCache,
    HostResolver,
    Resolution,
    is_ipv4_literal,
    reverse_lookup,
)


class TestIpv4Literal:
    def test_dotted_quad(self):
        assert is_ipv4_literal("192.168.1.1")

    def test_no_range_validation(self):
        assert is_ipv4_literal("999.999.999.999")

    def test_hostname(self):
        assert not is_ipv4_literal("myhost")

    def test_too_few_groups(self):
        assert not is_ipv4_literal("10.0.1")

    def test_group_too_long(self):
        assert not is_ipv4_literal("1000.0.0.1")

    def test_trailing_text(self):
        assert not is_ipv4_literal("10.0.0.1.example.com")


class TestHostCache:
    def test_put_if_absent_stores(self):
        cache = HostCache()
        assert cache.put_if_absent("a", "x") == "x"
        assert cache.get("a") == "x"
        assert "a" in cache
        assert len(cache) == 1

    def test_put_if_absent_keeps_first(self):
        cache = HostCache()
        cache.put_if_absent("a", "x")
        assert cache.put_if_absent("a", "y") == "x"
        assert cache.get("a") == "x"

    def test_missing_key(self):
        assert HostCache().get("nope") is None

    def test_snapshot_is_copy(self):
        cache = HostCache()
        cache.put_if_absent("a", "x")
        snap = cache.snapshot()
        snap["b"] = "y"
        assert "b" not in cache


class TestLookup:
    def test_hostname_skips_network(self, resolver, fake_dns):
        assert resolver.lookup("myhost") == Resolution("myhost", resolved=False)
        assert fake_dns.calls == []

    def test_ip_resolved(self, resolver):
        assert resolver.lookup("10.0.0.5") == Resolution("app-05.internal", resolved=True)

    def test_ip_without_reverse_entry(self, resolver):
        assert resolver.lookup("192.168.1.1") == Resolution("192.168.1.1", resolved=False)

    def test_lookup_does_not_fill_cache(self, resolver):
        resolver.lookup("10.0.0.5")
        assert len(resolver.cache) == 0

    def test_empty_name_falls_back(self):
        resolver = HostResolver(backend=lambda ip, timeout: "")
        assert resolver.lookup("10.0.0.9") == Resolution.fallback("10.0.0.9")


class TestResolve:
    def test_hostname_unchanged(self, resolver, fake_dns):
        assert resolver.resolve("myhost") == "myhost"
        assert fake_dns.calls == []

    def test_fallback_to_raw_ip(self, resolver):
        assert resolver.resolve("192.168.1.1") == "192.168.1.1"

    def test_reverse_name_used(self, resolver):
        assert resolver.resolve("10.0.0.5") == "app-05.internal"

    def test_result_cached(self, resolver, fake_dns):
        resolver.resolve("10.0.0.5")
        resolver.resolve("10.0.0.5")
        assert fake_dns.calls == ["10.0.0.5"]
        assert resolver.cache.get("10.0.0.5") == "app-05.internal"

    def test_failure_cached_without_retry(self, resolver, fake_dns):
        resolver.resolve("192.168.1.1")
        fake_dns.table["192.168.1.1"] = "late.example"
        assert resolver.resolve("192.168.1.1") == "192.168.1.1"
        assert fake_dns.calls == ["192.168.1.1"]

    def test_prefilled_cache_wins(self, fake_dns):
        cache = HostCache()
        cache.put_if_absent("10.0.0.5", "pinned")
        resolver = HostResolver(cache=cache, backend=fake_dns)
        assert resolver.resolve("10.0.0.5") == "pinned"
        assert fake_dns.calls == []

    def test_shared_cache_between_resolvers(self, fake_dns):
        cache = HostCache()
        HostResolver(cache=cache, backend=fake_dns).resolve("10.0.0.5")
        other = HostResolver(cache=cache, backend=lambda ip, timeout: "other")
        assert other.resolve("10.0.0.5") == "app-05.internal"


class TestConcurrentResolve:
    def test_same_key_converges(self):
        counter = {"n": 0}
        lock = threading.Lock()

        def slow_backend(ip, timeout):
            with lock:
                counter["n"] += 1
                n = counter["n"]
            time.sleep(0.01)
            return f"host-{n}"

        resolver = HostResolver(backend=slow_backend)
        barrier = threading.Barrier(100)
        results = []
        results_lock = threading.Lock()

        def worker():
            barrier.wait()
            name = resolver.resolve("10.1.2.3")
            with results_lock:
                results.append(name)

        threads = [threading.Thread(target=worker) for _ in range(100)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == 100
        assert len(set(results)) == 1
        assert len(resolver.cache) == 1
        assert resolver.cache.get("10.1.2.3") == results[0]

    def test_different_keys(self, resolver):
        hosts = [f"node-{i}" for i in range(20)]
        threads = [threading.Thread(target=resolver.resolve, args=(h,)) for h in hosts]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert len(resolver.cache) == 20


class TestReverseLookup:
    def test_success(self, monkeypatch):
        monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("gw.lan", [], [ip]))
        assert reverse_lookup("10.0.0.1", timeout=1.0) == "gw.lan"

    def test_error_propagates(self, monkeypatch):
        def fail(ip):
            raise socket.herror(1, "Unknown host")

        monkeypatch.setattr(socket, "gethostbyaddr", fail)
        with pytest.raises(OSError):
            reverse_lookup("10.0.0.1", timeout=1.0)

    def test_timeout(self, monkeypatch):
        def slow(ip):
            time.sleep(0.5)
            return ("late", [], [ip])

        monkeypatch.setattr(socket, "gethostbyaddr", slow)
        with pytest.raises(TimeoutError):
            reverse_lookup("10.0.0.1", timeout=0.05)

    def test_resolver_falls_back_on_timeout(self, monkeypatch):
        def slow(ip):
            time.sleep(0.5)
            return ("late", [], [ip])

        monkeypatch.setattr(socket, "gethostbyaddr", slow)
        resolver = HostResolver(timeout=0.05)
        assert resolver.resolve("10.0.0.1") == "10.0.0.1"


class TestLookupFailures:
    def test_non_ascii_digits_not_ip(self, resolver, fake_dns):
        assert not is_ipv4_literal("١.١.١.١")
        assert resolver.resolve("١.١.١.١") == "١.١.١.١"
        assert fake_dns.calls == []

    def test_unexpected_backend_error_falls_back(self):
        def broken(ip, timeout):
            raise RuntimeError("resolver bug")

        resolver = HostResolver(backend=broken)
        assert resolver.lookup("10.0.0.7") == Resolution.fallback("10.0.0.7")
        assert resolver.resolve("10.0.0.7") == "10.0.0.7"

    def test_unexpected_socket_error_falls_back(self, monkeypatch):
        def broken(ip):
            raise UnicodeError("bad label")

        monkeypatch.setattr(socket, "gethostbyaddr", broken)
        assert HostResolver(timeout=1.0).resolve("10.0.0.8") == "10.0.0.8"

    def test_batch_survives_lookup_error(self, sample_fields):
        from logpile.adapter import convert_batch

        def broken(ip, timeout):
            raise KeyError("name")

        records, rejects = convert_batch([sample_fields], "10.0.0.9", HostResolver(backend=broken))
        assert [r.host for r in records] == ["10.0.0.9"]
        assert rejects == []


class TestLookupPool:
    def test_slow_lookups_use_bounded_pool(self, monkeypatch):
        from logpile.hosts import DNS_POOL_SIZE

        def slow(ip):
            time.sleep(0.3)
            return ("late", [], [ip])

        monkeypatch.setattr(socket, "gethostbyaddr", slow)
        resolver = HostResolver(timeout=0.02)
        before = threading.active_count()
        for i in range(20):
            assert resolver.resolve(f"10.9.0.{i}") == f"10.9.0.{i}"
        assert threading.active_count() - before <= DNS_POOL_SIZE
