"""
Storage driver protocol and types for the tfstate resource.

Defines the StorageDriver Protocol that all storage backends must satisfy,
along with the version value type and storage exceptions.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from tfstate_resource.errors import ResourceError

ZERO_TIME = datetime.min.replace(tzinfo=UTC)

# --- Data Types ---


@dataclass(frozen=True)
class StorageObjectVersion:
    """A physical object: its prefix-relative key and modification time.

    The zero version (empty key, ZERO_TIME) means "no such object".
    """

    key: str
    last_modified: datetime

    @classmethod
    def zero(cls) -> "StorageObjectVersion":
        return cls(key="", last_modified=ZERO_TIME)

    @property
    def is_zero(self) -> bool:
        return not self.key and self.last_modified == ZERO_TIME


def newest(versions: list[StorageObjectVersion]) -> StorageObjectVersion:
    """Pick the most recently modified version, or the zero version.

    Ties on the timestamp are broken by key so the answer is deterministic.
    """
    if not versions:
        return StorageObjectVersion.zero()
    return max(versions, key=lambda v: (v.last_modified, v.key))


# --- Exceptions ---


class BackendError(ResourceError):
    """Base exception for storage backend operations."""


class ObjectNotFoundError(BackendError):
    """Raised when a requested object does not exist."""

    def __init__(self, key: str, detail: str = "") -> None:
        self.key = key
        message = f"Object not found: {key}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class BackendPermissionError(BackendError):
    """Raised when the configured credentials lack permission for the operation."""


# --- Protocol ---


@runtime_checkable
class StorageDriver(Protocol):
    """Protocol defining the storage driver interface.

    All methods are async. Keys are relative to the driver's configured
    prefix (`bucket_path`). Implementations satisfy this interface
    structurally; no inheritance required. A driver instance is bound to one
    request's credentials and is never shared between requests.
    """

    async def exists(self, key: str) -> bool:
        """Check if an object exists.

        Returns False for an absent object; only backend failures raise.
        """
        ...

    async def latest_version(self, pattern: str) -> StorageObjectVersion:
        """Find the most recently modified object whose key matches `pattern`.

        Args:
            pattern: Regular expression matched in full against each
                prefix-relative key.

        Returns:
            The newest matching version, or the zero version when nothing matches.
        """
        ...

    async def download(self, key: str, local_path: Path) -> StorageObjectVersion:
        """Fetch an object's bytes to a local file.

        Raises:
            ObjectNotFoundError: If the object does not exist at call time.
        """
        ...

    async def upload(self, key: str, local_path: Path) -> StorageObjectVersion:
        """Store a local file under `key`.

        Returns:
            The resulting version with the server-observed modification time.
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete an object. Idempotent."""
        ...

    async def close(self) -> None:
        """Release any resources held by the driver."""
        ...
