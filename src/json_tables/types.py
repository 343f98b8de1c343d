"""Shared types for the json_tables library."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Union

# A value that round-trips through the json module
JsonValue = Union[None, bool, int, float, str, list[Any], dict[str, Any]]
JsonObject = dict[str, Any]

# Zero-argument notification callback
Observer = Callable[[], None]

# Content written to a freshly created backing file
DEFAULT_DOCUMENT = '{"tables":{}}'


class TableMode(Enum):
    """How a table stores and addresses its records."""

    KEYED = "keyed"
    INDEXED = "indexed"

    @property
    def empty_json(self) -> JsonValue:
        """Return the serialized form of an empty table in this mode."""
        if self is TableMode.KEYED:
            return {}
        return []

    @classmethod
    def coerce(cls, value: TableMode | str) -> TableMode:
        """Accept either a TableMode or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown table mode {value!r}; expected one of "
                f"{', '.join(m.value for m in cls)}"
            ) from None


class LifecycleState(Enum):
    """Lifecycle of a database: NOT_STARTED -> STARTED -> CLOSED."""

    NOT_STARTED = "not_started"
    STARTED = "started"
    CLOSED = "closed"
