import pytest

from logpile import mdc
from logpile.hosts import HostCache, HostResolver


class FakeDns:
    """Stands in for reverse DNS: a fixed table, counting every call."""

    def __init__(self, table: dict | None = None):
        self.table = table or {}
        self.calls: list[str] = []

    def __call__(self, ip: str, timeout: float) -> str:
        self.calls.append(ip)
        if ip not in self.table:
            raise OSError(f"no reverse entry for {ip}")
        return self.table[ip]


@pytest.fixture
def fake_dns():
    return FakeDns({"10.0.0.5": "app-05.internal"})


@pytest.fixture
def resolver(fake_dns):
    return HostResolver(cache=HostCache(), backend=fake_dns)


@pytest.fixture(autouse=True)
def clean_mdc():
    mdc.clear()
    yield
    mdc.clear()


@pytest.fixture
def sample_fields():
    return {
        "timestamp": "1700000000123",
        "logger": "app.db",
        "level": "warn",
        "message": "slow query",
        "thread": "worker-1",
        "component": "billing",
    }
