"""
Top-level test configuration for the tfstate resource.
"""

import os
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Ensure test-friendly defaults
os.environ.setdefault("TFSTATE_RESOURCE_JSON_LOGS", "false")
os.environ.setdefault("TFSTATE_RESOURCE_LOG_LEVEL", "DEBUG")

T1 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
T2 = datetime(2024, 1, 2, 12, 0, 0, tzinfo=UTC)
T3 = datetime(2024, 1, 3, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def bucket_root(tmp_path: Path) -> Path:
    """Directory standing in for a bucket."""
    root = tmp_path / "bucket"
    root.mkdir()
    return root


@pytest.fixture
def put_object(bucket_root: Path) -> Callable[..., Path]:
    """Write an object under `<bucket_root>/<prefix>/<key>` with a fixed mtime."""

    def _put(
        key: str, content: str = "{}", modified: datetime = T1, prefix: str = "states"
    ) -> Path:
        path = bucket_root / prefix / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        ts = modified.timestamp()
        os.utime(path, (ts, ts))
        return path

    return _put


@pytest.fixture
def fs_storage_config(bucket_root: Path) -> dict[str, str]:
    """A `source.storage` block for the filesystem driver."""
    return {"driver": "filesystem", "root_dir": str(bucket_root), "bucket_path": "states"}
