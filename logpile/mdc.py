"""Thread-local diagnostic context (key/value pairs attached to the current thread)."""

import threading
from contextlib import contextmanager

_local = threading.local()


def _context() -> dict:
    ctx = getattr(_local, "values", None)
    if ctx is None:
        ctx = {}
        _local.values = ctx
    return ctx


def put(key: str, value):
    _context()[key] = value


def get(key: str, default=None):
    return _context().get(key, default)


def remove(key: str):
    _context().pop(key, None)


def clear():
    _context().clear()


def snapshot() -> dict:
    """Copy of the current thread's context, safe to hand to another thread."""
    return dict(_context())


@contextmanager
def scoped(**values):
    """Set values for the duration of a block, restoring previous ones afterwards."""
    ctx = _context()
    previous = {k: ctx[k] for k in values if k in ctx}
    ctx.update(values)
    try:
        yield
    finally:
        for key in values:
            if key in previous:
                ctx[key] = previous[key]
            else:
                ctx.pop(key, None)
