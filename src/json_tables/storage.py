"""Backing-file management for a json_tables database."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, BinaryIO

from json_tables.errors import (
    FileCreateError,
    FileNotReadableError,
    FileNotWritableError,
    FilePermissionError,
    FileSeedError,
    MalformedDocumentError,
)
from json_tables.types import DEFAULT_DOCUMENT, JsonObject
from json_tables.util import check_file_access

logger = logging.getLogger(__name__)


class DatabaseFile:
    """Owns the single JSON file behind a database.

    Blocking calls run in a worker thread, so each method is a suspension
    point for the event loop. The handle is opened once by ``open()`` and
    released once by ``close()``.
    """

    # Owner read/write
    FILE_MODE = 0o644

    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: BinaryIO | None = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    async def exists(self) -> bool:
        return await asyncio.to_thread(self.path.exists)

    async def bootstrap(self) -> None:
        """Create the file with the default document.

        Raises:
            FileCreateError: The file or its parent directory could not be created.
            FilePermissionError: The file mode could not be set.
            FileSeedError: The default document could not be written.
        """
        logger.debug("Creating database file %s", self.path)
        try:
            await asyncio.to_thread(self._create_new)
        except OSError as exc:
            raise FileCreateError(self.path) from exc

        try:
            await asyncio.to_thread(os.chmod, self.path, self.FILE_MODE)
        except OSError as exc:
            raise FilePermissionError(self.path) from exc

        try:
            await asyncio.to_thread(self.path.write_text, DEFAULT_DOCUMENT, "utf-8")
        except OSError as exc:
            raise FileSeedError(self.path) from exc

    def _create_new(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    async def check_access(self) -> None:
        """Raise unless the file is both readable and writable."""
        if not await check_file_access(self.path, os.R_OK):
            raise FileNotReadableError(self.path)
        if not await check_file_access(self.path, os.W_OK):
            raise FileNotWritableError(self.path)

    async def open(self) -> None:
        """Open the file for reading and writing."""
        if self._file is not None:
            return
        self._file = await asyncio.to_thread(open, self.path, "r+b")

    async def read(self) -> JsonObject:
        """Read and parse the whole document.

        Raises:
            MalformedDocumentError: The content is not JSON, or has no
                "tables" object.
        """
        raw = await asyncio.to_thread(self._read_all)
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedDocumentError(self.path, str(exc)) from exc

        if not isinstance(document, dict):
            raise MalformedDocumentError(self.path, "top level is not a JSON object")
        if "tables" not in document:
            raise MalformedDocumentError(self.path, "missing 'tables' object")
        if not isinstance(document["tables"], dict):
            raise MalformedDocumentError(self.path, "'tables' is not a JSON object")
        return document

    def _read_all(self) -> bytes:
        f = self._require_open()
        f.seek(0)
        return f.read()

    async def write(self, data: bytes) -> None:
        """Replace the file content with ``data``.

        Writes from offset 0 and truncates to ``len(data)`` so a shorter
        document leaves no trailing bytes from a longer one.
        """
        await asyncio.to_thread(self._write_all, data)

    def _write_all(self, data: bytes) -> None:
        f = self._require_open()
        f.seek(0)
        f.write(data)
        f.truncate(len(data))
        f.flush()
        os.fsync(f.fileno())

    async def close(self) -> None:
        """Close the handle; calling it again does nothing."""
        f, self._file = self._file, None
        if f is not None:
            await asyncio.to_thread(f.close)

    def _require_open(self) -> BinaryIO:
        if self._file is None:
            raise ValueError(f"Database file '{self.path}' is not open")
        return self._file

    def __repr__(self) -> str:
        state = "open" if self._file is not None else "closed"
        return f"DatabaseFile({str(self.path)!r}, {state})"


def encode_document(tables: dict[str, Any]) -> bytes:
    """Encode the ``{"tables": ...}`` document as compact UTF-8 JSON."""
    return json.dumps({"tables": tables}, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
