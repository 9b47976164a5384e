"""
Tests for resolve_versions.
"""

from datetime import UTC, datetime

import pytest

from tfstate_resource.errors import ConfigurationError
from tfstate_resource.models import Version
from tfstate_resource.services.version_resolver import resolve_versions
from tfstate_resource.storage.protocol import StorageObjectVersion

T1 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
T2 = datetime(2024, 1, 2, 12, 0, 0, tzinfo=UTC)


def _prior(ts: datetime, env_name: str = "prod") -> Version:
    return Version(env_name=env_name, last_modified=ts.isoformat())


class TestResolveVersions:
    def test_no_prior_reports_latest(self) -> None:
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert resolve_versions(None, latest) == [
            Version(env_name="prod", last_modified=T1.isoformat())
        ]

    def test_zero_prior_treated_as_absent(self) -> None:
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert len(resolve_versions(Version(), latest)) == 1

    def test_empty_storage(self) -> None:
        assert resolve_versions(None, StorageObjectVersion.zero()) == []

    def test_empty_storage_with_prior(self) -> None:
        assert resolve_versions(_prior(T1), StorageObjectVersion.zero()) == []

    def test_newer_latest(self) -> None:
        latest = StorageObjectVersion(key="dev.tfstate", last_modified=T2)
        versions = resolve_versions(_prior(T1), latest)
        assert [v.env_name for v in versions] == ["dev"]
        assert versions[0].last_modified_time() == T2

    def test_equal_timestamps_report_nothing(self) -> None:
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert resolve_versions(_prior(T1), latest) == []

    def test_older_latest_reports_nothing(self) -> None:
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert resolve_versions(_prior(T2), latest) == []

    def test_prior_in_other_timezone(self) -> None:
        prior = Version(env_name="prod", last_modified="2024-01-01T13:00:00+01:00")
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert resolve_versions(prior, latest) == []

    def test_naive_prior_is_utc(self) -> None:
        prior = Version(env_name="prod", last_modified="2024-01-01T12:00:00")
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        assert resolve_versions(prior, latest) == []

    def test_idempotent_when_fed_its_own_result(self) -> None:
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T2)
        first = resolve_versions(None, latest)
        assert resolve_versions(first[0], latest) == []

    def test_malformed_timestamp_raises(self) -> None:
        prior = Version(env_name="prod", last_modified="yesterday")
        latest = StorageObjectVersion(key="prod.tfstate", last_modified=T1)
        with pytest.raises(ConfigurationError):
            resolve_versions(prior, latest)

    def test_missing_env_name_raises(self) -> None:
        prior = Version(last_modified=T1.isoformat())
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_versions(prior, StorageObjectVersion.zero())
        assert exc_info.value.fields == ["version.env_name"]
