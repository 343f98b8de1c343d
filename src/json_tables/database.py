"""Database: a set of named tables mirrored to one JSON file."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from json_tables.errors import LifecycleError, MalformedDocumentError
from json_tables.storage import DatabaseFile, encode_document
from json_tables.table import Table
from json_tables.types import JsonObject, LifecycleState, Observer

logger = logging.getLogger(__name__)


@dataclass
class DatabaseOptions:
    """Configuration for a Database.

    Attributes:
        path: Location of the backing JSON file.
        autosave_interval_ms: Save dirty state every this many milliseconds
            while the database is started. 0 disables autosave.
    """

    path: Path
    autosave_interval_ms: int = 0

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if isinstance(self.autosave_interval_ms, bool) or not isinstance(self.autosave_interval_ms, int):
            raise TypeError(
                f"autosave_interval_ms must be an int, got {type(self.autosave_interval_ms).__name__}"
            )
        if self.autosave_interval_ms < 0:
            raise ValueError(f"autosave_interval_ms must be >= 0, got {self.autosave_interval_ms}")

    @property
    def autosave_interval(self) -> float | None:
        """Autosave interval in seconds, or None when disabled."""
        if self.autosave_interval_ms == 0:
            return None
        return self.autosave_interval_ms / 1000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DatabaseOptions:
        """Build options from a plain mapping.

        Accepts ``autosave`` as an alias for ``autosave_interval_ms``.
        """
        if "path" not in data:
            raise KeyError("Database options need a 'path'")
        interval = data.get("autosave_interval_ms", data.get("autosave", 0))
        return cls(path=Path(data["path"]), autosave_interval_ms=interval)


class Database:
    """A set of named tables persisted together in one JSON file.

    Tables are registered with ``add_table()`` before ``start()``. Starting
    creates the file if needed and loads stored records into the registered
    tables. Any later table mutation marks the database dirty; ``save()``
    rewrites the whole file, either when called, on the autosave interval,
    or on ``close()``.

    Use it as an async context manager to guarantee ``close()`` runs::

        async with Database("data.json") as db:
            ...
    """

    def __init__(
        self,
        options: DatabaseOptions | str | os.PathLike[str],
        *,
        autosave_interval_ms: int | None = None,
    ) -> None:
        """Initialize a database.

        Args:
            options: A DatabaseOptions, or the path of the backing file.
            autosave_interval_ms: Overrides the autosave interval of ``options``.
        """
        if not isinstance(options, DatabaseOptions):
            options = DatabaseOptions(Path(options), autosave_interval_ms or 0)
        elif autosave_interval_ms is not None:
            options = dataclasses.replace(options, autosave_interval_ms=autosave_interval_ms)

        self.options = options
        self._file = DatabaseFile(options.path)
        self._tables: dict[str, Table[Any]] = {}

        self._state = LifecycleState.NOT_STARTED
        self._dirty = False
        self._starting = False
        self._hydrating = False
        self._saving = False
        self._write_task: asyncio.Future[None] | None = None

        self._autosave_task: asyncio.Task[None] | None = None
        self._stop_autosave: asyncio.Event | None = None
        self._closing: asyncio.Future[None] | None = None

        self._ready_observers: list[Observer] = []
        self._close_observers: list[Observer] = []

    # -- state -------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self.options.path

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def started(self) -> bool:
        return self._state is LifecycleState.STARTED

    @property
    def closed(self) -> bool:
        return self._state is LifecycleState.CLOSED

    @property
    def dirty(self) -> bool:
        """True if tables changed since the last save began."""
        return self._dirty

    @property
    def tables(self) -> Mapping[str, Table[Any]]:
        """Read-only view of the registered tables."""
        return MappingProxyType(self._tables)

    def __repr__(self) -> str:
        return (
            f"Database({str(self.path)!r}, state={self._state.value}, "
            f"tables={sorted(self._tables)}, dirty={self._dirty})"
        )

    def _mark_dirty(self) -> None:
        if self._state is LifecycleState.STARTED and not self._hydrating:
            self._dirty = True

    # -- observers ---------------------------------------------------------

    def on_ready(self, callback: Observer) -> None:
        """Call ``callback`` once ``start()`` has loaded and saved the file."""
        self._ready_observers.append(callback)

    def on_close(self, callback: Observer) -> None:
        """Call ``callback`` when ``close()`` begins."""
        self._close_observers.append(callback)

    @staticmethod
    def _notify(observers: list[Observer]) -> None:
        for callback in list(observers):
            callback()

    # -- table registry ----------------------------------------------------

    def _check_tables_mutable(self) -> None:
        if self._state is not LifecycleState.NOT_STARTED or self._starting:
            raise LifecycleError("Cannot modify tables after database started")

    def add_table(self, name: str, table: Table[Any]) -> Table[Any]:
        """Register ``table`` under ``name``, replacing any table of that name.

        Raises:
            LifecycleError: The database has been started.
        """
        self._check_tables_mutable()
        previous = self._tables.get(name)
        if previous is not None and previous is not table:
            previous.remove_observer(self._mark_dirty)
        self._tables[name] = table
        table.add_observer(self._mark_dirty)
        return table

    def delete_table(self, name: str) -> Table[Any] | None:
        """Unregister and return the table called ``name``, or None.

        Raises:
            LifecycleError: The database has been started.
        """
        self._check_tables_mutable()
        table = self._tables.pop(name, None)
        if table is not None:
            table.remove_observer(self._mark_dirty)
        return table

    def get_table(self, name: str) -> Table[Any] | None:
        return self._tables.get(name)

    def has_table(self, name: str) -> bool:
        return name in self._tables

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Open the backing file and load every registered table from it.

        A missing file is created with the default document. On any failure
        the database is closed before the error propagates.

        Raises:
            LifecycleError: The database is already started or closed, or was
                closed before start finished.
            InitializationError: The file could not be created.
            FileAccessError: The file is not readable or not writable.
            MalformedDocumentError: The file does not hold a valid document.
        """
        if self._state is LifecycleState.STARTED or self._starting:
            raise LifecycleError("Database already started")
        if self._state is LifecycleState.CLOSED:
            raise LifecycleError("Cannot start a closed database")

        self._starting = True
        try:
            if not await self._file.exists():
                self._check_not_closing()
                await self._file.bootstrap()
            self._check_not_closing()
            await self._file.check_access()
            self._check_not_closing()
            await self._file.open()
            self._check_not_closing()
            self._state = LifecycleState.STARTED
            document = await self._file.read()
            self._check_not_closing()
            self._hydrate(document["tables"])

            # Rewrite the file in canonical form
            self._dirty = True
            await self.save()
            self._check_not_closing()
        except BaseException:
            self._starting = False
            # Nothing from a failed start is written back
            self._dirty = False
            await self.close()
            # close() may have finished before the handle was opened
            await self._file.close()
            raise
        self._starting = False
        logger.info("Started database %s with tables %s", self.path, sorted(self._tables))

        self._start_autosave()
        self._notify(self._ready_observers)

    def _check_not_closing(self) -> None:
        if self._closing is not None:
            raise LifecycleError("Database was closed while starting")

    def _hydrate(self, stored_tables: JsonObject) -> None:
        self._hydrating = True
        try:
            for name, stored in stored_tables.items():
                table = self._tables.get(name)
                if table is None:
                    logger.debug("Ignoring unregistered table %r in %s", name, self.path)
                    continue
                if stored is not None and not isinstance(stored, type(table.mode.empty_json)):
                    raise MalformedDocumentError(
                        self.path,
                        f"table '{name}' is {table.mode.value} but stored as {type(stored).__name__}",
                    )
                try:
                    table.bulk_ingest(stored)
                except TypeError as exc:
                    raise MalformedDocumentError(self.path, f"table '{name}': {exc}") from exc
                logger.debug("Loaded %d records into table %r", table.count, name)
        finally:
            self._hydrating = False

    async def save(self) -> None:
        """Write all tables to the backing file if anything changed.

        Does nothing when nothing is dirty or another save is still writing.
        The write runs to completion even if the caller is cancelled; on
        failure the database is marked dirty again and the error propagates.

        Raises:
            LifecycleError: The database is not started.
        """
        if self._state is not LifecycleState.STARTED:
            raise LifecycleError(f"Cannot save a database that is {self._state.value}")
        if not self._dirty or self._saving:
            return

        self._saving = True
        self._dirty = False
        try:
            data = encode_document({name: table.serialize() for name, table in self._tables.items()})
        except BaseException:
            self._saving = False
            self._dirty = True
            raise

        write = asyncio.ensure_future(self._file.write(data))
        write.add_done_callback(self._write_finished)
        self._write_task = write
        await asyncio.shield(write)
        logger.debug("Saved %d bytes to %s", len(data), self.path)

    def _write_finished(self, write: asyncio.Future[None]) -> None:
        self._saving = False
        if write.cancelled() or write.exception() is not None:
            self._dirty = True

    async def _wait_for_write(self) -> None:
        write = self._write_task
        if write is not None and not write.done():
            await asyncio.wait([write])

    def _start_autosave(self) -> None:
        interval = self.options.autosave_interval
        if interval is None or self._autosave_task is not None:
            return
        self._stop_autosave = asyncio.Event()
        self._autosave_task = asyncio.create_task(self._autosave(interval, self._stop_autosave))

    async def _autosave(self, interval: float, stop: asyncio.Event) -> None:
        while True:
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await self.save()
            except Exception:
                logger.exception("Autosave of %s failed", self.path)

    async def _stop_autosave_task(self) -> None:
        task, self._autosave_task = self._autosave_task, None
        if task is None:
            return
        if self._stop_autosave is not None:
            self._stop_autosave.set()
        await asyncio.wait([task])

    async def close(self) -> None:
        """Flush pending changes and release the backing file.

        Safe to call more than once; later calls wait for the first to finish.
        """
        if self._closing is None:
            self._closing = asyncio.ensure_future(self._shutdown())
            await asyncio.shield(self._closing)
        elif not self._closing.done():
            await asyncio.wait([self._closing])

    async def _shutdown(self) -> None:
        self._notify(self._close_observers)
        await self._stop_autosave_task()
        await self._wait_for_write()
        try:
            if self._file.is_open and self._state is LifecycleState.STARTED:
                await self.save()
                await self._wait_for_write()
        finally:
            await self._file.close()
            was_started = self._state is LifecycleState.STARTED
            self._state = LifecycleState.CLOSED
            self._dirty = False
            if was_started:
                logger.info("Closed database %s", self.path)

    async def __aenter__(self) -> Database:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
