"""Physical storage for uploaded files.

Files are stored under ``<root>/<folder>/<stored_name>``, where the folder is
``orders/<id>`` or ``quotes/<id>``. Rows keep the path relative to the root
so the upload directory can move without rewriting the table.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path, PurePosixPath
from typing import Protocol

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits
_UNSAFE_CHARS = set('/\\:*?"<>|\0')


def generate_stored_name(original_name: str, now_ms: int | None = None) -> str:
    """``<stem>_<millis>_<random><ext>`` built from the client file name."""
    name = PurePosixPath(original_name.replace("\\", "/")).name or "file"
    suffix = PurePosixPath(name).suffix
    stem = name[: -len(suffix)] if suffix else name
    stem = "".join("_" if c in _UNSAFE_CHARS else c for c in stem).strip(". ") or "file"

    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    random_part = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(11))
    return f"{stem[:100]}_{millis}_{random_part}{suffix}"


class FileStorage(Protocol):
    """Where attachment bytes live; rows only hold the returned key."""

    async def save(self, folder: str, stored_name: str, data: bytes) -> str:
        """Store ``data`` and return the storage key."""
        ...

    def exists(self, key: str) -> bool: ...

    async def delete(self, key: str) -> bool:
        """Remove the object; returns False if it was already gone."""
        ...

    def path_for(self, key: str) -> Path: ...


class LocalFileStorage:
    """Filesystem storage rooted at the configured upload directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()

    def path_for(self, key: str) -> Path:
        """Absolute path for ``key``.

        Raises:
            ValueError: If the key points outside the storage root
        """
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise ValueError(f"Storage key escapes upload root: {key}")
        return path

    async def save(self, folder: str, stored_name: str, data: bytes) -> str:
        key = f"{folder}/{stored_name}"
        path = self.path_for(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as out_file:
            await out_file.write(data)
        logger.debug("Stored %d bytes at %s", len(data), key)
        return key

    def exists(self, key: str) -> bool:
        try:
            return self.path_for(key).is_file()
        except ValueError:
            return False

    async def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not await aiofiles.os.path.exists(path):
            logger.warning("Attachment already missing from storage: %s", key)
            return False
        await aiofiles.os.remove(path)
        return True
