"""
AWS S3 storage driver for the tfstate resource.

Uses aioboto3 for async I/O. Credentials are bound into the session at
construction: static keys from the source, keys issued by Vault, or the SDK
credential chain when none are given. Works against S3-compatible services
(MinIO, LocalStack) via a custom endpoint.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import aioboto3
import aiofiles
from botocore.exceptions import BotoCoreError, ClientError

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

CHUNK_SIZE = 1024 * 1024
NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")
PERMISSION_CODES = ("AccessDenied", "403")


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class S3Driver:
    """Storage driver backed by AWS S3."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str = "us-east-1",
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        session_token: str = "",
        server_side_encryption: str = "",
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._prefix = normalize_prefix(prefix)
        self._endpoint_url = endpoint_url or None
        self._server_side_encryption = server_side_encryption

        session_kwargs: dict[str, Any] = {"region_name": region}
        if access_key_id and secret_access_key:
            session_kwargs["aws_access_key_id"] = access_key_id
            session_kwargs["aws_secret_access_key"] = secret_access_key
            if session_token:
                session_kwargs["aws_session_token"] = session_token

        self._session = aioboto3.Session(**session_kwargs)
        self._client: Any = None

    def _full_key(self, key: str) -> str:
        return join_prefix(self._prefix, key)

    def _strip_prefix(self, full_key: str) -> str:
        return strip_prefix(self._prefix, full_key)

    def _translate(self, error: Exception, key: str) -> BackendError:
        """Map SDK failures onto the storage error taxonomy."""
        if isinstance(error, ClientError):
            code = _error_code(error)
            if code in NOT_FOUND_CODES:
                return ObjectNotFoundError(key)
            if code in PERMISSION_CODES:
                return BackendPermissionError(
                    f"Access denied to 's3://{self._bucket}/{self._full_key(key)}': {error}"
                )
        return BackendError(f"S3 request for '{self._full_key(key)}' failed: {error}")

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await self._session.client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
            ).__aenter__()
            logger.info(
                "S3 client initialized",
                bucket=self._bucket,
                region=self._region,
                prefix=self._prefix,
            )
        return self._client

    async def exists(self, key: str) -> bool:
        client = await self._get_client()

        try:
            await client.head_object(Bucket=self._bucket, Key=self._full_key(key))
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise self._translate(e, key) from e
        except BotoCoreError as e:
            raise self._translate(e, key) from e

    async def latest_version(self, pattern: str) -> StorageObjectVersion:
        client = await self._get_client()
        matcher = re.compile(pattern)
        full_prefix = listing_prefix(self._prefix)
        versions: list[StorageObjectVersion] = []

        try:
            paginator = client.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self._bucket, Prefix=full_prefix):
                for obj in page.get("Contents", []):
                    key = self._strip_prefix(obj["Key"])
                    if matcher.fullmatch(key):
                        versions.append(
                            StorageObjectVersion(key=key, last_modified=obj["LastModified"])
                        )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, full_prefix) from e

        return newest(versions)

    async def download(self, key: str, local_path: Path) -> StorageObjectVersion:
        client = await self._get_client()
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            response = await client.get_object(Bucket=self._bucket, Key=self._full_key(key))
            body = response["Body"]
            async with aiofiles.open(local_path, "wb") as f:
                while chunk := await body.read(CHUNK_SIZE):
                    await f.write(chunk)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key) from e

        logger.debug("Downloaded object", bucket=self._bucket, key=self._full_key(key))
        return StorageObjectVersion(key=key, last_modified=response["LastModified"])

    async def upload(self, key: str, local_path: Path) -> StorageObjectVersion:
        client = await self._get_client()
        full_key = self._full_key(key)

        async with aiofiles.open(local_path, "rb") as f:
            data = await f.read()

        put_kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": full_key,
            "Body": data,
            "ContentType": "application/json",
        }
        if self._server_side_encryption:
            put_kwargs["ServerSideEncryption"] = self._server_side_encryption

        try:
            await client.put_object(**put_kwargs)
            # LastModified is only reported by a subsequent HEAD
            head = await client.head_object(Bucket=self._bucket, Key=full_key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key) from e

        logger.debug("Uploaded object", bucket=self._bucket, key=full_key, size_bytes=len(data))
        return StorageObjectVersion(key=key, last_modified=head["LastModified"])

    async def delete(self, key: str) -> None:
        client = await self._get_client()

        try:
            await client.delete_object(Bucket=self._bucket, Key=self._full_key(key))
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None
            logger.debug("S3 client closed")
