"""
Azure Blob Storage driver for the tfstate resource.

Uses azure.storage.blob.aio for async I/O. Auth with the storage account key
when one is configured, DefaultAzureCredential otherwise (picks up Workload
Identity and managed identities automatically).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import aiofiles

from tfstate_resource.logging_config import get_logger
from tfstate_resource.storage.keys import (
    join_prefix,
    listing_prefix,
    normalize_prefix,
    strip_prefix,
)
from tfstate_resource.storage.protocol import (
    BackendError,
    BackendPermissionError,
    ObjectNotFoundError,
    StorageObjectVersion,
    newest,
)

logger = get_logger(__name__)


def _status(exc: Exception) -> int | None:
    """HTTP status of an azure-core error; auth failures count as 403."""
    from azure.core.exceptions import (
        ClientAuthenticationError,
        HttpResponseError,
        ResourceNotFoundError,
    )

    if isinstance(exc, ResourceNotFoundError):
        return 404
    if isinstance(exc, ClientAuthenticationError):
        return 403
    if isinstance(exc, HttpResponseError):
        return exc.status_code
    return None


class AzureDriver:
    """Storage driver backed by an Azure Blob container."""

    def __init__(
        self,
        account_name: str,
        container_name: str,
        prefix: str = "",
        account_key: str = "",
    ) -> None:
        self._account_name = account_name
        self._container_name = container_name
        self._prefix = normalize_prefix(prefix)
        self._account_key = account_key

        self._container_client: Any = None
        self._credential: Any = None

    @property
    def _account_url(self) -> str:
        return f"https://{self._account_name}.blob.core.windows.net"

    def _full_key(self, key: str) -> str:
        return join_prefix(self._prefix, key)

    def _strip_prefix(self, full_key: str) -> str:
        return strip_prefix(self._prefix, full_key)

    def _translate(self, exc: Exception, key: str) -> BackendError:
        status = _status(exc)
        if status == 404:
            return ObjectNotFoundError(key)
        if status == 403:
            return BackendPermissionError(
                f"Access denied to '{self._container_name}/{self._full_key(key)}': {exc}"
            )
        return BackendError(f"Azure request for '{self._full_key(key)}' failed: {exc}")

    async def _get_container_client(self) -> Any:
        if self._container_client is None:
            from azure.storage.blob.aio import ContainerClient

            credential: Any = self._account_key
            if not credential:
                from azure.identity.aio import DefaultAzureCredential

                self._credential = credential = DefaultAzureCredential()

            self._container_client = ContainerClient(
                account_url=self._account_url,
                container_name=self._container_name,
                credential=credential,
            )
            logger.info(
                "Azure container client ready",
                account=self._account_name,
                container=self._container_name,
                auth="account_key" if self._account_key else "default_credential",
            )
        return self._container_client

    async def _blob(self, key: str) -> Any:
        container = await self._get_container_client()
        return container.get_blob_client(self._full_key(key))

    async def exists(self, key: str) -> bool:
        blob = await self._blob(key)

        try:
            await blob.get_blob_properties()
        except Exception as e:
            if _status(e) == 404:
                return False
            raise self._translate(e, key) from e
        return True

    async def latest_version(self, pattern: str) -> StorageObjectVersion:
        container = await self._get_container_client()
        matcher = re.compile(pattern)
        full_prefix = listing_prefix(self._prefix)
        versions: list[StorageObjectVersion] = []

        try:
            async for item in container.list_blobs(name_starts_with=full_prefix or None):
                key = self._strip_prefix(item.name)
                if matcher.fullmatch(key):
                    versions.append(StorageObjectVersion(key=key, last_modified=item.last_modified))
        except Exception as e:
            raise self._translate(e, full_prefix) from e

        return newest(versions)

    async def download(self, key: str, local_path: Path) -> StorageObjectVersion:
        blob = await self._blob(key)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            stream = await blob.download_blob()
            async with aiofiles.open(local_path, "wb") as f:
                async for chunk in stream.chunks():
                    await f.write(chunk)
        except Exception as e:
            raise self._translate(e, key) from e

        return StorageObjectVersion(key=key, last_modified=stream.properties.last_modified)

    async def upload(self, key: str, local_path: Path) -> StorageObjectVersion:
        from azure.storage.blob import ContentSettings

        blob = await self._blob(key)
        async with aiofiles.open(local_path, "rb") as f:
            data = await f.read()

        try:
            result = await blob.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type="application/json"),
            )
        except Exception as e:
            raise self._translate(e, key) from e

        return StorageObjectVersion(key=key, last_modified=result["last_modified"])

    async def delete(self, key: str) -> None:
        blob = await self._blob(key)

        try:
            await blob.delete_blob()
        except Exception as e:
            if _status(e) == 404:
                return  # Already gone
            raise self._translate(e, key) from e

    async def close(self) -> None:
        if self._container_client is not None:
            await self._container_client.close()
            self._container_client = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
        logger.debug("Azure client closed")
