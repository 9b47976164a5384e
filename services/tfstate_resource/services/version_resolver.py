"""Decide whether the backend holds a version newer than the caller's.

Pure logic, no I/O: the caller reads the latest storage version and passes
it in.
"""

from tfstate_resource.models import Version
from tfstate_resource.storage.protocol import ZERO_TIME, StorageObjectVersion


def resolve_versions(prior: Version | None, latest: StorageObjectVersion) -> list[Version]:
    """Return at most one new version.

    - no prior version: any existing object counts as new;
    - malformed prior version: ConfigurationError;
    - nothing in storage: no versions;
    - otherwise a version only if `latest` is strictly newer than `prior`.
    """
    baseline = ZERO_TIME
    if prior is not None and not prior.is_zero:
        prior.validate_fields()
        baseline = prior.last_modified_time()

    if latest.is_zero:
        return []

    if latest.last_modified > baseline:
        return [Version.from_storage(latest)]
    return []
