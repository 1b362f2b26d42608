"""Chunked file responses for export and audio downloads."""

from __future__ import annotations

import asyncio
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from falcon.asgi import Response

CHUNK_SIZE = 64 * 1024


async def file_chunks(path: Path, chunk_size: int = CHUNK_SIZE) -> cabc.AsyncIterator[bytes]:
    """Yield the file at ``path`` in chunks, reading off the event loop."""
    handle = await asyncio.to_thread(path.open, "rb")
    try:
        while chunk := await asyncio.to_thread(handle.read, chunk_size):
            yield chunk
    finally:
        await asyncio.to_thread(handle.close)


def send_file(
    resp: Response, path: Path, *, filename: str, mime_type: str, size: int
) -> None:
    """Stream ``path`` as an attachment named ``filename``."""
    resp.content_type = mime_type
    resp.downloadable_as = filename
    if size:
        resp.content_length = size
    resp.stream = file_chunks(path)
