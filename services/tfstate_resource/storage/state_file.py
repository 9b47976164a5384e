"""
Versioned remote state file.

A StateFile is an immutable view of one environment's state in a storage
backend. It is either Normal (key `<env>.tfstate`) or Tainted (key
`<env>.tfstate.tainted`); the working key follows the mode. Without an
environment it addresses every state file under the prefix, which is what
`check` uses when the source does not pin an environment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path

from tfstate_resource.logging_config import get_logger
from tfstate_resource.storage.keys import ALL_STATE_FILES_PATTERN, state_key, tainted_state_key
from tfstate_resource.storage.protocol import StorageDriver, StorageObjectVersion

logger = get_logger(__name__)


@dataclass(frozen=True)
class StateFile:
    """One environment's remote state, bound to a request-scoped driver."""

    driver: StorageDriver
    env_name: str | None = None
    tainted: bool = False
    local_path: Path | None = None

    @property
    def normal_key(self) -> str:
        return state_key(self._require_env())

    @property
    def tainted_key(self) -> str:
        return tainted_state_key(self._require_env())

    @property
    def remote_key(self) -> str:
        """The working key: tainted form once converted, normal form otherwise."""
        return self.tainted_key if self.tainted else self.normal_key

    def _require_env(self) -> str:
        if not self.env_name:
            raise ValueError("StateFile has no environment name")
        return self.env_name

    def _require_local_path(self) -> Path:
        if self.local_path is None:
            raise ValueError(f"StateFile '{self.remote_key}' has no local path")
        return self.local_path

    def with_local_path(self, local_path: Path) -> StateFile:
        return replace(self, local_path=Path(local_path))

    def convert_to_tainted(self) -> StateFile:
        """Return a copy that targets the tainted key.

        One-way for the lifetime of a request; self is left unchanged.
        """
        return replace(self, tainted=True)

    async def exists_as_tainted(self) -> bool:
        """Probe the tainted key regardless of the current mode."""
        return await self.driver.exists(self.tainted_key)

    async def exists(self) -> bool:
        return await self.driver.exists(self.remote_key)

    async def latest_version(self) -> StorageObjectVersion:
        """Newest object at the working key, or across all environments when unset."""
        if self.env_name:
            pattern = re.escape(self.remote_key)
        else:
            pattern = ALL_STATE_FILES_PATTERN
        return await self.driver.latest_version(pattern)

    async def download(self) -> StorageObjectVersion:
        """Download the working key to the local path.

        Raises ObjectNotFoundError if the object vanished since it was probed;
        there is no fallback to the other key.
        """
        version = await self.driver.download(self.remote_key, self._require_local_path())
        logger.info("State file downloaded", key=self.remote_key, tainted=self.tainted)
        return version

    async def upload(self) -> StorageObjectVersion:
        """Publish the local state to the working key."""
        version = await self.driver.upload(self.remote_key, self._require_local_path())
        logger.info("State file uploaded", key=self.remote_key, tainted=self.tainted)
        return version

    async def upload_tainted(self) -> StorageObjectVersion:
        """Quarantine: publish the local state as tainted and drop the normal key."""
        version = await self.driver.upload(self.tainted_key, self._require_local_path())
        await self.driver.delete(self.normal_key)
        logger.warning("State file marked tainted", key=self.tainted_key)
        return version

    async def clear_taint(self) -> None:
        """Remove the tainted marker, leaving the normal key untouched."""
        await self.driver.delete(self.tainted_key)
        logger.info("Taint cleared", key=self.tainted_key)

    async def delete(self) -> None:
        await self.driver.delete(self.remote_key)
        logger.info("State file deleted", key=self.remote_key)
