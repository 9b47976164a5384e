"""
Tests for the terraform CLI client and output helpers.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tfstate_resource.config import AwsCredentials
from tfstate_resource.errors import ToolExecutionError
from tfstate_resource.services.terraform_service import (
    SENSITIVE_PLACEHOLDER,
    TerraformClient,
    credential_env,
    raw_outputs,
    sanitized_outputs,
)

OUTPUTS = {
    "name": {"value": "prod", "type": "string", "sensitive": False},
    "count": {"value": 3, "type": "number", "sensitive": False},
    "tags": {"value": {"b": "2", "a": "1"}, "type": ["map", "string"], "sensitive": False},
    "token": {"value": "abc", "type": "string", "sensitive": True},
}


def _process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    return proc


class TestOutputHelpers:
    def test_sanitized_outputs(self) -> None:
        assert sanitized_outputs(OUTPUTS) == {
            "name": "prod",
            "count": "3",
            "tags": '{"a": "1", "b": "2"}',
            "token": SENSITIVE_PLACEHOLDER,
        }

    def test_raw_outputs_keep_sensitive_values(self) -> None:
        assert raw_outputs(OUTPUTS)["token"] == "abc"
        assert raw_outputs(OUTPUTS)["tags"] == {"b": "2", "a": "1"}

    def test_empty(self) -> None:
        assert sanitized_outputs({}) == {}
        assert raw_outputs({}) == {}


class TestCredentialEnv:
    def test_none(self) -> None:
        assert credential_env(None) == {}

    def test_with_session_token(self) -> None:
        env = credential_env(
            AwsCredentials(access_key_id="ASIA", secret_access_key="s", session_token="t")
        )
        assert env["AWS_ACCESS_KEY_ID"] == "ASIA"
        assert env["AWS_SECRET_ACCESS_KEY"] == "s"
        assert env["AWS_SESSION_TOKEN"] == "t"
        assert env["TF_VAR_access_key"] == "ASIA"
        assert env["TF_VAR_session_token"] == "t"

    def test_without_session_token(self) -> None:
        env = credential_env(AwsCredentials(access_key_id="AKIA", secret_access_key="s"))
        assert "AWS_SESSION_TOKEN" not in env
        assert "TF_VAR_session_token" not in env


class TestTerraformClient:
    async def test_output(self, tmp_path: Path) -> None:
        state = tmp_path / "terraform.tfstate"
        proc = _process(stdout=json.dumps(OUTPUTS).encode())

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as exec_mock:
            outputs = await TerraformClient(state, env={"TF_LOG": "INFO"}, binary="tf").output()

        assert outputs == OUTPUTS
        args = exec_mock.call_args.args
        assert args == ("tf", "output", "-json", f"-state={state}")
        kwargs = exec_mock.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["env"]["TF_LOG"] == "INFO"

    async def test_output_empty(self, tmp_path: Path) -> None:
        proc = _process(stdout=b"{}\n")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert await TerraformClient(tmp_path / "terraform.tfstate").output() == {}

    async def test_output_unparsable(self, tmp_path: Path) -> None:
        proc = _process(stdout=b"not json")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ToolExecutionError):
                await TerraformClient(tmp_path / "terraform.tfstate").output()

    async def test_output_not_an_object(self, tmp_path: Path) -> None:
        proc = _process(stdout=b"[]")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ToolExecutionError):
                await TerraformClient(tmp_path / "terraform.tfstate").output()

    async def test_version(self, tmp_path: Path) -> None:
        proc = _process(stdout=b'{"terraform_version": "1.7.5", "platform": "linux_amd64"}')
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as exec_mock:
            version = await TerraformClient(tmp_path / "terraform.tfstate", binary="tf").version()
        assert version == "1.7.5"
        assert exec_mock.call_args.args == ("tf", "version", "-json")

    async def test_version_unparsable(self, tmp_path: Path) -> None:
        proc = _process(stdout=b"Terraform v0.11.14")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ToolExecutionError):
                await TerraformClient(tmp_path / "terraform.tfstate").version()

    async def test_nonzero_exit(self, tmp_path: Path) -> None:
        proc = _process(stderr=b"Error: state corrupt", returncode=1)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ToolExecutionError) as exc_info:
                await TerraformClient(tmp_path / "terraform.tfstate").output()
        assert "state corrupt" in str(exc_info.value)

    async def test_missing_binary(self, tmp_path: Path) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("no such file")),
        ):
            with pytest.raises(ToolExecutionError):
                await TerraformClient(tmp_path / "terraform.tfstate", binary="missing-tf").version()

    async def test_default_binary_from_settings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from tfstate_resource.config import settings

        monkeypatch.setattr(settings, "terraform_binary", "/opt/terraform")
        proc = _process(stdout=b'{"terraform_version": "1.5.0"}')
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as exec_mock:
            await TerraformClient(tmp_path / "terraform.tfstate").version()
        assert exec_mock.call_args.args[0] == "/opt/terraform"
