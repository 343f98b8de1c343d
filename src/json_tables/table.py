"""In-memory table of records with a cached JSON form."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Generic, TypeVar

from json_tables.types import JsonObject, JsonValue, Observer, TableMode
from json_tables.util import map_object

T = TypeVar("T")


def record_key(record: Any) -> str:
    """Return the primary key of a keyed-table record.

    A record exposes its key either as a ``key`` attribute or, for plain
    mappings, as a ``"key"`` item.
    """
    if isinstance(record, Mapping):
        key = record.get("key")
    else:
        key = getattr(record, "key", None)
    if not isinstance(key, str):
        raise TypeError(
            f"Records in a keyed table need a string 'key', got {type(record).__name__} "
            f"with key {key!r}"
        )
    return key


class Table(Generic[T]):
    """Holds the records of one named table.

    A KEYED table maps string keys to records and takes each record's key from
    the record itself. An INDEXED table keeps records in insertion order and
    addresses them by position.

    Tables know nothing about files. The owning database registers an observer
    that is called after every mutation, and asks for ``serialize()`` when it
    saves.
    """

    def __init__(
        self,
        mode: TableMode | str,
        from_json: Callable[[Any], T],
        to_json: Callable[[T], JsonValue],
    ) -> None:
        """Initialize an empty table.

        Args:
            mode: KEYED or INDEXED storage; cannot be changed later.
            from_json: Converts one stored JSON value into a record.
            to_json: Converts one record into a JSON-compatible value.
        """
        self._mode = TableMode.coerce(mode)
        self._records: dict[str, T] | list[T] = {} if self._mode is TableMode.KEYED else []
        self._from_json = from_json
        self._to_json = to_json
        self._cache: JsonValue = None
        self._cache_valid = False
        self._observers: list[Observer] = []

    @property
    def mode(self) -> TableMode:
        return self._mode

    @property
    def keyed(self) -> bool:
        return self._mode is TableMode.KEYED

    @property
    def count(self) -> int:
        """Return the number of records in the table."""
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        if isinstance(self._records, dict):
            return iter(self._records.values())
        return iter(self._records)

    def __contains__(self, key_or_index: object) -> bool:
        if isinstance(self._records, dict):
            return key_or_index in self._records
        return (
            isinstance(key_or_index, int)
            and not isinstance(key_or_index, bool)
            and 0 <= key_or_index < len(self._records)
        )

    def __repr__(self) -> str:
        return f"Table(mode={self._mode.value}, count={len(self._records)})"

    def keys(self) -> list[str]:
        """Return the keys of a keyed table in insertion order."""
        if not isinstance(self._records, dict):
            raise TypeError("Indexed tables have no keys")
        return list(self._records)

    # -- observers ---------------------------------------------------------

    def add_observer(self, callback: Observer) -> None:
        """Register ``callback`` to be called after every mutation."""
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Observer) -> None:
        """Unregister ``callback``; unknown callbacks are ignored."""
        if callback in self._observers:
            self._observers.remove(callback)

    def _changed(self) -> None:
        """Drop the serialized snapshot and notify observers."""
        self._cache_valid = False
        self._cache = None
        for callback in list(self._observers):
            callback()

    # -- record access -----------------------------------------------------

    def add(self, record: T) -> None:
        """Append a record, or insert/overwrite it by key in a keyed table."""
        if isinstance(self._records, dict):
            self._records[record_key(record)] = record
        else:
            self._records.append(record)
        self._changed()

    def get(self, key_or_index: str | int) -> T | None:
        """Return the record at a key or position, or None if there is none."""
        if isinstance(self._records, dict):
            if not isinstance(key_or_index, str):
                raise TypeError(f"Keyed tables are addressed by str, got {type(key_or_index).__name__}")
            return self._records.get(key_or_index)

        index = self._check_index(key_or_index)
        if index < 0 or index >= len(self._records):
            return None
        return self._records[index]

    def set(self, key_or_index: str | int, record: T | None) -> None:
        """Overwrite the record at a key or position; None removes it.

        Keyed tables: removing a missing key does nothing. A record must carry
        ``key_or_index`` as its own key, otherwise ValueError is raised and the
        table is left unchanged.

        Indexed tables: a position equal to the current length appends.
        Removing shifts later records down by one. Any other position outside
        the table raises IndexError.
        """
        if isinstance(self._records, dict):
            if not isinstance(key_or_index, str):
                raise TypeError(f"Keyed tables are addressed by str, got {type(key_or_index).__name__}")
            if record is None:
                self._records.pop(key_or_index, None)
            else:
                key = record_key(record)
                if key != key_or_index:
                    raise ValueError(f"Record key {key!r} does not match {key_or_index!r}")
                self._records[key_or_index] = record
            self._changed()
            return

        index = self._check_index(key_or_index)
        size = len(self._records)
        if record is None:
            if index < 0 or index >= size:
                raise IndexError(f"Index {index} out of range [0, {size})")
            del self._records[index]
        elif index == size:
            self._records.append(record)
        elif 0 <= index < size:
            self._records[index] = record
        else:
            raise IndexError(f"Index {index} out of range [0, {size}]")
        self._changed()

    def clear(self) -> None:
        """Remove every record."""
        self._records.clear()
        self._changed()

    @staticmethod
    def _check_index(index: Any) -> int:
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError(f"Indexed tables are addressed by int, got {type(index).__name__}")
        return index

    # -- JSON conversion ---------------------------------------------------

    def serialize(self) -> JsonValue:
        """Return the table converted through ``to_json``.

        The result is cached and the same object is returned until the next
        mutation, so callers must not modify it.
        """
        if not self._cache_valid:
            if isinstance(self._records, dict):
                self._cache = map_object(self._records, self._to_json)
            else:
                self._cache = [self._to_json(record) for record in self._records]
            self._cache_valid = True
        return self._cache

    def parse(self, data: JsonValue) -> dict[str, T] | list[T]:
        """Convert a stored collection into records without adding them.

        Args:
            data: A JSON object for keyed tables, a JSON array for indexed
                tables. None is treated as empty.

        Returns:
            A dict of records (keyed) or a list of records (indexed).
        """
        if data is None:
            data = self._mode.empty_json

        if self._mode is TableMode.KEYED:
            if not isinstance(data, dict):
                raise TypeError(f"Keyed tables are stored as JSON objects, got {type(data).__name__}")
            return map_object(data, self._from_json)

        if not isinstance(data, list):
            raise TypeError(f"Indexed tables are stored as JSON arrays, got {type(data).__name__}")
        return [self._from_json(item) for item in data]

    def bulk_ingest(self, data: JsonValue) -> None:
        """Convert a stored collection and add every record to the table."""
        records = self.parse(data)
        values = records.values() if isinstance(records, dict) else records
        for record in values:
            self.add(record)


def keyed_table(from_json: Callable[[Any], T], to_json: Callable[[T], JsonObject]) -> Table[T]:
    """Create a KEYED table."""
    return Table(TableMode.KEYED, from_json, to_json)


def indexed_table(from_json: Callable[[Any], T], to_json: Callable[[T], JsonValue]) -> Table[T]:
    """Create an INDEXED table."""
    return Table(TableMode.INDEXED, from_json, to_json)
