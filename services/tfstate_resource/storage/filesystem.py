"""
Filesystem storage driver for the tfstate resource.

Uses aiofiles for async I/O against a local directory that stands in for a
bucket. Intended for development, CI and shared network mounts.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from tfstate_resource.logging_config import get_logger
from tfstate_resource.storage.keys import normalize_prefix
from tfstate_resource.storage.protocol import (
    BackendError,
    ObjectNotFoundError,
    StorageObjectVersion,
    newest,
)

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class FilesystemDriver:
    """Storage driver backed by the local filesystem."""

    def __init__(self, root_dir: str, prefix: str = "") -> None:
        self._root = Path(root_dir)
        self._prefix = normalize_prefix(prefix)

        logger.info("Filesystem driver initialized", root_dir=str(self._root), prefix=self._prefix)

    @property
    def _base(self) -> Path:
        return self._root / self._prefix if self._prefix else self._root

    def _full_path(self, key: str) -> Path:
        """Resolve key to a full filesystem path, preventing path traversal."""
        clean = Path(key)
        if not key or clean.is_absolute() or ".." in clean.parts:
            raise BackendError(f"Invalid key: {key!r}")
        return self._base / clean

    def _key_from_path(self, path: Path) -> str:
        """Convert a filesystem path back to a prefix-relative key."""
        return path.relative_to(self._base).as_posix()

    async def _version(self, key: str, path: Path) -> StorageObjectVersion:
        stat = await aiofiles.os.stat(path)
        return StorageObjectVersion(
            key=key,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )

    async def exists(self, key: str) -> bool:
        return self._full_path(key).is_file()

    async def latest_version(self, pattern: str) -> StorageObjectVersion:
        matcher = re.compile(pattern)
        versions: list[StorageObjectVersion] = []
        if not self._base.is_dir():
            return newest(versions)

        for path in sorted(self._base.rglob("*")):
            if not path.is_file():
                continue
            key = self._key_from_path(path)
            if matcher.fullmatch(key):
                versions.append(await self._version(key, path))

        return newest(versions)

    async def download(self, key: str, local_path: Path) -> StorageObjectVersion:
        path = self._full_path(key)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            version = await self._version(key, path)
            async with aiofiles.open(path, "rb") as src, aiofiles.open(local_path, "wb") as dst:
                while chunk := await src.read(CHUNK_SIZE):
                    await dst.write(chunk)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key) from e
        except OSError as e:
            raise BackendError(f"Failed to read '{key}': {e}") from e

        return version

    async def upload(self, key: str, local_path: Path) -> StorageObjectVersion:
        path = self._full_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(local_path, "rb") as src, aiofiles.open(path, "wb") as dst:
                while chunk := await src.read(CHUNK_SIZE):
                    await dst.write(chunk)
        except OSError as e:
            raise BackendError(f"Failed to write '{key}': {e}") from e

        return await self._version(key, path)

    async def delete(self, key: str) -> None:
        path = self._full_path(key)
        if path.exists():
            await aiofiles.os.remove(path)

    async def close(self) -> None:
        """No resources to release for filesystem driver."""

    @property
    def root_dir(self) -> Path:
        """The directory standing in for the bucket."""
        return self._root
