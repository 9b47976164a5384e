"""
Google Cloud Storage driver for the tfstate resource.

Uses gcloud-aio-storage for async I/O. Auth via a service account file when
configured, Application Default Credentials otherwise.
"""

from __future__ import annotations

import re
from datetime import datetime
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
    """HTTP status carried by a gcloud-aio (aiohttp) error, if any."""
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    text = str(exc)
    if "404" in text or "Not Found" in text:
        return 404
    if "403" in text:
        return 403
    return None


def _parse_updated(value: str) -> datetime:
    """Parse GCS's RFC3339 `updated` field."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise BackendError(f"Unparsable GCS timestamp: {value!r}") from e


class GCSDriver:
    """Storage driver backed by Google Cloud Storage."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        service_account_file: str = "",
    ) -> None:
        self._bucket_name = bucket
        self._prefix = normalize_prefix(prefix)
        self._service_file = service_account_file or None

        self._aio_storage: Any = None

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
                f"Access denied to 'gs://{self._bucket_name}/{self._full_key(key)}': {exc}"
            )
        return BackendError(f"GCS request for '{self._full_key(key)}' failed: {exc}")

    async def _get_aio_storage(self) -> Any:
        if self._aio_storage is None:
            from gcloud.aio.storage import Storage

            self._aio_storage = Storage(service_file=self._service_file)
            logger.info("GCS async client initialized", bucket=self._bucket_name)
        return self._aio_storage

    async def exists(self, key: str) -> bool:
        storage = await self._get_aio_storage()

        try:
            metadata = await storage.download_metadata(self._bucket_name, self._full_key(key))
            return metadata is not None
        except Exception as e:
            if _status(e) == 404:
                return False
            raise self._translate(e, key) from e

    async def latest_version(self, pattern: str) -> StorageObjectVersion:
        storage = await self._get_aio_storage()
        matcher = re.compile(pattern)
        params: dict[str, str] = {"prefix": listing_prefix(self._prefix)}
        versions: list[StorageObjectVersion] = []

        while True:
            try:
                page = await storage.list_objects(self._bucket_name, params=params)
            except Exception as e:
                raise self._translate(e, params["prefix"]) from e

            for item in page.get("items", []):
                key = self._strip_prefix(item.get("name", ""))
                if matcher.fullmatch(key):
                    versions.append(
                        StorageObjectVersion(key=key, last_modified=_parse_updated(item["updated"]))
                    )

            token = page.get("nextPageToken")
            if not token:
                break
            params["pageToken"] = token

        return newest(versions)

    async def download(self, key: str, local_path: Path) -> StorageObjectVersion:
        storage = await self._get_aio_storage()
        blob_name = self._full_key(key)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            metadata = await storage.download_metadata(self._bucket_name, blob_name)
            data = await storage.download(self._bucket_name, blob_name)
        except Exception as e:
            raise self._translate(e, key) from e

        async with aiofiles.open(local_path, "wb") as f:
            await f.write(data)

        return StorageObjectVersion(key=key, last_modified=_parse_updated(metadata["updated"]))

    async def upload(self, key: str, local_path: Path) -> StorageObjectVersion:
        storage = await self._get_aio_storage()
        blob_name = self._full_key(key)

        async with aiofiles.open(local_path, "rb") as f:
            data = await f.read()

        try:
            response = await storage.upload(
                self._bucket_name,
                blob_name,
                data,
                content_type="application/json",
            )
        except Exception as e:
            raise self._translate(e, key) from e

        return StorageObjectVersion(key=key, last_modified=_parse_updated(response["updated"]))

    async def delete(self, key: str) -> None:
        storage = await self._get_aio_storage()

        try:
            await storage.delete(self._bucket_name, self._full_key(key))
        except Exception as e:
            if _status(e) == 404:
                return  # Idempotent delete
            raise self._translate(e, key) from e

    async def close(self) -> None:
        if self._aio_storage is not None:
            await self._aio_storage.close()
            self._aio_storage = None
        logger.debug("GCS client closed")
