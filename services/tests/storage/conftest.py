"""
Shared fixtures for storage tests.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from tfstate_resource.storage.filesystem import FilesystemDriver


@pytest_asyncio.fixture
async def fs_driver(bucket_root: Path) -> AsyncGenerator[FilesystemDriver]:
    """A FilesystemDriver rooted in a temporary bucket directory, prefix `states`."""
    driver = FilesystemDriver(root_dir=str(bucket_root), prefix="states")
    yield driver
    await driver.close()


@pytest.fixture
def localstack_available() -> bool:
    """Check if LocalStack is available for S3 integration tests.

    Verifies both that the env var is set AND that the service is actually
    reachable.
    """
    endpoint = os.environ.get("LOCALSTACK_ENDPOINT", "")
    if not endpoint:
        return False

    import urllib.request

    try:
        req = urllib.request.Request(f"{endpoint}/_localstack/health", method="GET")
        with urllib.request.urlopen(req, timeout=2):
            return True
    except Exception:
        return False


@pytest.fixture
def localstack_endpoint() -> str:
    """Return the LocalStack endpoint URL."""
    return os.environ.get("LOCALSTACK_ENDPOINT", "http://localhost:4566")


@pytest.fixture
def s3_test_bucket() -> str:
    """Return the S3 test bucket name."""
    return os.environ.get("S3_TEST_BUCKET", "tfstate-resource-test")
