"""Logical component/service label lookup from event metadata."""

from typing import Any, Callable, Mapping

# Priority order: first key with a value wins.
COMPONENT_KEYS = ("component", "server", "application")


def resolve_component(lookup: Callable[[str], Any]) -> str | None:
    """Return the first non-None value of COMPONENT_KEYS via *lookup*, as text.

    *lookup* is whatever accessor the metadata source exposes (``dict.get``,
    ``LegacyEvent.get_mdc``, ``mdc.get``), so the same priority applies to all.
    """
    for key in COMPONENT_KEYS:
        value = lookup(key)
        if value is not None:
            return str(value)
    return None


def component_from_mapping(context: Mapping[str, Any] | None) -> str | None:
    if not context:
        return None
    return resolve_component(context.get)
