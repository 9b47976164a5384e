"""Check flow: report the newest state version not yet seen by the caller.

Read-only: lists storage, never downloads or writes.
"""

from tfstate_resource.logging_config import get_logger
from tfstate_resource.models import CheckRequest, Version
from tfstate_resource.services.credential_service import resolve_storage_config
from tfstate_resource.services.version_resolver import resolve_versions
from tfstate_resource.storage import build_driver
from tfstate_resource.storage.state_file import StateFile

logger = get_logger(__name__)


async def run_check(request: CheckRequest) -> list[Version]:
    prior = request.version
    if prior is not None and not prior.is_zero:
        prior.validate_fields()
    request.source.validate_fields()

    storage_cfg, _ = await resolve_storage_config(request.source.storage, request.source.vault)
    driver = build_driver(storage_cfg)

    try:
        state_file = StateFile(driver=driver, env_name=request.source.env_name or None)
        latest = await state_file.latest_version()
    finally:
        await driver.close()

    versions = resolve_versions(prior, latest)
    logger.info(
        "Check complete",
        env_name=request.source.env_name or "*",
        latest_key=latest.key or None,
        new_versions=len(versions),
    )
    return versions
