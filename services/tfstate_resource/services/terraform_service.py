"""Terraform CLI client.

Runs the terraform binary against a downloaded state file to read its
outputs and the binary's version. Both calls fail fast with
ToolExecutionError; nothing is retried.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from tfstate_resource.config import AwsCredentials, settings
from tfstate_resource.errors import ToolExecutionError
from tfstate_resource.logging_config import get_logger

logger = get_logger(__name__)

SENSITIVE_PLACEHOLDER = "<sensitive>"


def credential_env(credentials: AwsCredentials | None) -> dict[str, str]:
    """Environment exposing dynamic credentials to terraform and its providers."""
    if credentials is None:
        return {}
    env = {
        "AWS_ACCESS_KEY_ID": credentials.access_key_id,
        "AWS_SECRET_ACCESS_KEY": credentials.secret_access_key,
        "TF_VAR_access_key": credentials.access_key_id,
        "TF_VAR_secret_key": credentials.secret_access_key,
    }
    if credentials.session_token:
        env["AWS_SESSION_TOKEN"] = credentials.session_token
        env["TF_VAR_session_token"] = credentials.session_token
    return env


def raw_outputs(outputs: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Output name to unmasked value, for the metadata sidecar file."""
    return {name: output.get("value") for name, output in outputs.items()}


def sanitized_outputs(outputs: dict[str, dict[str, Any]]) -> dict[str, str]:
    """Output name to display string, with sensitive values masked."""
    sanitized: dict[str, str] = {}
    for name, output in outputs.items():
        value = output.get("value")
        if output.get("sensitive"):
            sanitized[name] = SENSITIVE_PLACEHOLDER
        elif isinstance(value, str):
            sanitized[name] = value
        else:
            sanitized[name] = json.dumps(value, sort_keys=True)
    return sanitized


class TerraformClient:
    """Thin async wrapper around the terraform binary for one state file."""

    def __init__(
        self,
        state_path: Path,
        env: dict[str, str] | None = None,
        binary: str = "",
    ) -> None:
        self._state_path = Path(state_path)
        self._env = env or {}
        self._binary = binary or settings.terraform_binary

    async def _run(self, *args: str) -> str:
        env = {**os.environ, **self._env}
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                cwd=str(self._state_path.parent),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ToolExecutionError(f"Failed to start '{self._binary}': {e}") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise ToolExecutionError(
                f"'{self._binary} {' '.join(args)}' exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode()

    async def output(self) -> dict[str, dict[str, Any]]:
        """Structured outputs: name to {"value", "sensitive", "type"}."""
        raw = await self._run("output", "-json", f"-state={self._state_path}")
        try:
            outputs = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Unparsable terraform output: {e}") from e
        if not isinstance(outputs, dict):
            raise ToolExecutionError("Unexpected terraform output: expected a JSON object")
        logger.debug("Read terraform outputs", count=len(outputs))
        return outputs

    async def version(self) -> str:
        raw = await self._run("version", "-json")
        try:
            version = json.loads(raw)["terraform_version"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ToolExecutionError(f"Unparsable terraform version: {raw.strip()!r}") from e
        return str(version)
