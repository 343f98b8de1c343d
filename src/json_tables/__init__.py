"""JSON Tables - an embeddable table store mirrored to a single JSON file."""

from json_tables.database import Database, DatabaseOptions
from json_tables.errors import (
    DatabaseError,
    FileAccessError,
    FileCreateError,
    FileNotReadableError,
    FileNotWritableError,
    FilePermissionError,
    FileSeedError,
    InitializationError,
    LifecycleError,
    MalformedDocumentError,
)
from json_tables.storage import DatabaseFile
from json_tables.table import Table, indexed_table, keyed_table
from json_tables.types import LifecycleState, TableMode
from json_tables.util import check_file_access, map_object

__all__ = [
    # Main API
    "Database",
    "DatabaseOptions",
    "Table",
    "TableMode",
    "LifecycleState",
    "keyed_table",
    "indexed_table",
    # Storage
    "DatabaseFile",
    # Errors
    "DatabaseError",
    "LifecycleError",
    "InitializationError",
    "FileCreateError",
    "FilePermissionError",
    "FileSeedError",
    "FileAccessError",
    "FileNotReadableError",
    "FileNotWritableError",
    "MalformedDocumentError",
    # Helpers
    "check_file_access",
    "map_object",
]

__version__ = "0.1.0"
