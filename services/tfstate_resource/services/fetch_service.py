"""Fetch flow: materialize one state version into the step's output directory.

Ordering matters: configuration is validated before any I/O, the tainted key
is probed before plain existence, and existence before download. The driver
and the scratch directory are released on every exit path.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiofiles

from tfstate_resource.config import settings
from tfstate_resource.logging_config import get_logger
from tfstate_resource.models import InRequest, InResponse, MetadataField, Version
from tfstate_resource.services.credential_service import resolve_storage_config
from tfstate_resource.services.terraform_service import (
    TerraformClient,
    credential_env,
    raw_outputs,
    sanitized_outputs,
)
from tfstate_resource.storage import build_driver
from tfstate_resource.storage.protocol import ObjectNotFoundError
from tfstate_resource.storage.state_file import StateFile

logger = get_logger(__name__)

TerraformFactory = Callable[[Path, dict[str, str]], TerraformClient]

NAME_FILE = "name"
METADATA_FILE = "metadata"
STATE_FILE = "terraform.tfstate"
COPY_CHUNK_SIZE = 1024 * 1024

MISSING_STATE_HINT = (
    "If you intended to run the `destroy` action, add `put.get_params.action: destroy`.\n"
    "A destroy has nothing to fetch afterwards, so the get step must be told to expect that."
)


def _default_terraform(state_path: Path, env: dict[str, str]) -> TerraformClient:
    return TerraformClient(state_path=state_path, env=env)


async def _write_text(path: Path, content: str) -> None:
    async with aiofiles.open(path, "w") as f:
        await f.write(content)


async def _copy_file(src: Path, dst: Path) -> None:
    async with aiofiles.open(src, "rb") as fin, aiofiles.open(dst, "wb") as fout:
        while chunk := await fin.read(COPY_CHUNK_SIZE):
            await fout.write(chunk)


async def run_fetch(
    request: InRequest,
    output_dir: Path,
    terraform_factory: TerraformFactory = _default_terraform,
) -> InResponse:
    version = request.version
    version.validate_fields()
    request.source.validate_fields()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    await _write_text(output_dir / NAME_FILE, version.env_name)

    if request.params.output_module:
        logger.warning(
            "output_module is not supported by terraform >= 0.12 and is ignored",
            output_module=request.params.output_module,
        )

    storage_cfg, credentials = await resolve_storage_config(
        request.source.storage, request.source.vault
    )
    driver = build_driver(storage_cfg)

    try:
        with tempfile.TemporaryDirectory(
            prefix="tfstate-resource-in-", dir=settings.tmp_dir or None
        ) as tmp_dir:
            state_file = StateFile(
                driver=driver,
                env_name=version.env_name,
                local_path=Path(tmp_dir) / STATE_FILE,
            )
            if await state_file.exists_as_tainted():
                logger.warning("Found tainted state file", key=state_file.tainted_key)
                state_file = state_file.convert_to_tainted()

            if not await state_file.exists():
                if version.is_plan:
                    logger.info("No state yet for plan version", env_name=version.env_name)
                    return InResponse(version=version)
                if request.is_destroy:
                    logger.info("No state left to destroy", env_name=version.env_name)
                    return InResponse(version=version)
                raise ObjectNotFoundError(
                    state_file.remote_key,
                    detail=f"State file does not exist with key '{state_file.remote_key}'.\n"
                    + MISSING_STATE_HINT,
                )

            storage_version = await state_file.download()
            fetched = Version.from_storage(storage_version)

            env = {**request.source.env, **credential_env(credentials)}
            client = terraform_factory(state_file.local_path, env)
            outputs = await client.output()
            tf_version = await client.version()

            await _write_metadata_file(output_dir, raw_outputs(outputs))
            if request.params.output_statefile:
                await _copy_file(state_file.local_path, output_dir / STATE_FILE)
    finally:
        await driver.close()

    metadata = [
        MetadataField(name=name, value=value)
        for name, value in sorted(sanitized_outputs(outputs).items())
    ]
    metadata.append(MetadataField(name="terraform_version", value=tf_version))

    logger.info(
        "Fetched state",
        env_name=fetched.env_name,
        tainted=state_file.tainted,
        outputs=len(outputs),
    )
    return InResponse(version=fetched, metadata=metadata)


async def _write_metadata_file(output_dir: Path, outputs: dict[str, Any]) -> None:
    await _write_text(output_dir / METADATA_FILE, json.dumps(outputs, sort_keys=True))
