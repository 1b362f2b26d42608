"""Filesystem helpers for stored export and audio artifacts."""

from __future__ import annotations

import asyncio
import contextlib
import os
import typing as typ
from pathlib import Path

if typ.TYPE_CHECKING:
    import collections.abc as cabc


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.tmp")
    temp_path.write_bytes(data)
    os.replace(temp_path, path)


async def write_atomic(path: Path, data: bytes) -> int:
    """Write ``data`` to ``path`` via a temp file and rename.

    Returns
    -------
    int
        Number of bytes written.

    """
    await asyncio.to_thread(_write_atomic, path, data)
    return len(data)


def _remove(paths: list[str]) -> tuple[int, int]:
    removed = 0
    freed = 0
    for raw in paths:
        path = Path(raw)
        with contextlib.suppress(FileNotFoundError):
            size = path.stat().st_size
            path.unlink()
            removed += 1
            freed += size
    return removed, freed


async def remove_files(paths: cabc.Iterable[str | None]) -> tuple[int, int]:
    """Delete each existing file in ``paths``.

    Missing files are skipped; other OS errors propagate.

    Returns
    -------
    tuple[int, int]
        Files removed and bytes freed.

    """
    present = [path for path in paths if path]
    if not present:
        return (0, 0)
    return await asyncio.to_thread(_remove, present)


async def file_exists(path: str | None) -> bool:
    """Return whether ``path`` names an existing regular file."""
    if not path:
        return False
    return await asyncio.to_thread(Path(path).is_file)
