"""Attachment storage.

Only the reference path of a stored file is part of the data model; this
module writes and removes the bytes behind it on the local filesystem.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path
from typing import Protocol

from projectdock.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileStore(Protocol):
    """Stores uploaded bytes and deletes them by path."""

    async def save(self, filename: str, content: bytes) -> str: ...

    async def delete(self, path: str) -> None: ...


class LocalFileStore:
    """FileStore writing into a single upload directory.

    Stored names are ``<uuid>-<sanitised original name>``; the returned
    path is relative to the upload directory, e.g. ``/uploads/<name>``.
    """

    def __init__(self, base_dir: Path, url_prefix: str = "/uploads") -> None:
        self.base_dir = base_dir
        self.url_prefix = url_prefix.rstrip("/")

    def _write(self, stored_name: str, content: bytes) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        (self.base_dir / stored_name).write_bytes(content)

    def _resolve(self, path: str) -> Path:
        name = Path(path).name
        return self.base_dir / name

    async def save(self, filename: str, content: bytes) -> str:
        """Write content and return its reference path."""
        safe = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._") or "file"
        stored_name = f"{uuid.uuid4().hex}-{safe}"
        await asyncio.to_thread(self._write, stored_name, content)

        logger.info("attachment_stored", stored_name=stored_name, size=len(content))
        return f"{self.url_prefix}/{stored_name}"

    async def delete(self, path: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        target = self._resolve(path)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        logger.info("attachment_file_deleted", stored_name=target.name)
