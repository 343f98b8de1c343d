"""Exceptions raised by json_tables.

Every error derives from DatabaseError and from the builtin exception a
caller would naturally catch for that condition, so ``except OSError`` keeps
working around file bootstrap and ``except ValueError`` around bad data.
"""

from __future__ import annotations

from pathlib import Path


class DatabaseError(Exception):
    """Base class for all json_tables errors."""


class LifecycleError(DatabaseError, RuntimeError):
    """An operation is not allowed in the database's current lifecycle state."""


class InitializationError(DatabaseError, OSError):
    """The backing file could not be bootstrapped."""

    stage = "initialize"

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Error while creating file '{path}': {reason}")


class FileCreateError(InitializationError):
    """The backing file (or its parent directory) could not be created."""

    stage = "create"

    def __init__(self, path: Path) -> None:
        super().__init__(path, "cannot ensure file exists")


class FilePermissionError(InitializationError):
    """Owner read/write permission could not be set on a new backing file."""

    stage = "permission"

    def __init__(self, path: Path) -> None:
        super().__init__(path, "cannot make file read/write")


class FileSeedError(InitializationError):
    """The default document could not be written to a new backing file."""

    stage = "seed"

    def __init__(self, path: Path) -> None:
        super().__init__(path, "cannot write default content")


class FileAccessError(DatabaseError, PermissionError):
    """The backing file exists but cannot be used."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(message)


class FileNotReadableError(FileAccessError):
    """The backing file exists but cannot be read."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, f"File '{path}' is not readable")


class FileNotWritableError(FileAccessError):
    """The backing file exists but cannot be written."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, f"File '{path}' is not writable")


class MalformedDocumentError(DatabaseError, ValueError):
    """The backing file does not hold a valid database document."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Malformed database file '{path}': {reason}")
