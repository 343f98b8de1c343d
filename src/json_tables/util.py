"""Small helpers shared by the table and storage layers."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Mapping
from typing import TypeVar

K = TypeVar("K")
V = TypeVar("V")
R = TypeVar("R")


async def check_file_access(path: str | os.PathLike[str], mode: int = os.F_OK) -> bool:
    """Return True if ``path`` is accessible with ``mode`` (os.R_OK, os.W_OK, ...)."""
    return await asyncio.to_thread(os.access, path, mode)


def map_object(obj: Mapping[K, V], transform: Callable[[V], R]) -> dict[K, R]:
    """Apply ``transform`` to every value of ``obj``, keeping keys and order."""
    return {key: transform(value) for key, value in obj.items()}
