"""
Configuration management for the tfstate resource.

Two layers:
- per-request source configuration (storage backend, Vault) parsed from the
  pipeline's JSON request, validated without any network access;
- process-level settings loaded from a YAML file and environment variables.
"""

from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tfstate_resource.errors import ConfigurationError, missing_fields_error


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path("/etc/tfstate-resource/config.yaml")
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- Credential Models ---


class AwsCredentials(BaseModel):
    """Short-lived credentials issued by the dynamic-secrets engine."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    session_token: str = Field(default="")

    @property
    def is_complete(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


class VaultConfig(BaseModel):
    """Vault dynamic-secrets configuration (`source.vault`)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    address: str = Field(default="", description="Vault server URL")
    secret_path: str = Field(default="", description="Logical path issuing credentials")
    token: str = Field(default="", description="Vault token")
    ttl: int = Field(default=0, description="Requested lease duration in seconds")
    tls_skip_verify: bool = Field(default=False)

    def validate_fields(self) -> None:
        """Raise ConfigurationError naming every missing field."""
        missing = []
        if not self.address:
            missing.append("vault.address")
        if not self.secret_path:
            missing.append("vault.secret_path")
        if not self.token:
            missing.append("vault.token")
        if self.ttl <= 0:
            missing.append("vault.ttl")
        if missing:
            raise missing_fields_error(missing)


# --- Storage Configuration Models ---


class StorageBackend(StrEnum):
    """Supported storage backends."""

    S3 = "s3"
    GCS = "gcs"
    AZURE = "azure"
    FILESYSTEM = "filesystem"


# Fields each backend cannot work without.
REQUIRED_FIELDS: dict[StorageBackend, tuple[str, ...]] = {
    StorageBackend.S3: ("bucket", "bucket_path", "access_key_id", "secret_access_key"),
    StorageBackend.GCS: ("bucket", "bucket_path"),
    StorageBackend.AZURE: ("account_name", "container", "bucket_path"),
    StorageBackend.FILESYSTEM: ("root_dir", "bucket_path"),
}

# Required fields that Vault can supply instead of the source.
CREDENTIAL_FIELDS = frozenset({"access_key_id", "secret_access_key"})

# Fields that only make sense for one backend. Setting one of them while a
# different driver is selected is a contradictory configuration.
BACKEND_ONLY_FIELDS: dict[StorageBackend, tuple[str, ...]] = {
    StorageBackend.S3: (
        "access_key_id",
        "secret_access_key",
        "session_token",
        "endpoint",
        "server_side_encryption",
    ),
    StorageBackend.GCS: ("service_account_file",),
    StorageBackend.AZURE: ("account_name", "container", "account_key"),
    StorageBackend.FILESYSTEM: ("root_dir",),
}


class StorageConfig(BaseModel):
    """Storage configuration (`source.storage`).

    Flat on the wire, the way pipeline authors write it. The `driver` field
    selects the backend; the remaining fields are backend-specific.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    driver: StorageBackend = Field(
        default=StorageBackend.S3,
        description="Storage backend: s3, gcs, azure, or filesystem",
    )
    bucket: str = Field(default="", description="S3 or GCS bucket name")
    bucket_path: str = Field(default="", description="Key prefix holding the state files")

    # S3
    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    session_token: str = Field(default="")
    region_name: str = Field(default="us-east-1")
    endpoint: str = Field(default="", description="Custom endpoint URL (MinIO, LocalStack)")
    server_side_encryption: str = Field(default="")

    # GCS
    service_account_file: str = Field(default="")

    # Azure
    account_name: str = Field(default="")
    container: str = Field(default="")
    account_key: str = Field(default="")

    # Filesystem
    root_dir: str = Field(default="")

    def validate_fields(self, require_credentials: bool = True) -> None:
        """Pure validation: no SDK objects are created and nothing is fetched.

        `require_credentials=False` skips the static credential fields, for
        configurations whose credentials are injected later from Vault.
        """
        missing = [
            f"storage.{name}"
            for name in REQUIRED_FIELDS[self.driver]
            if not getattr(self, name)
            and (require_credentials or name not in CREDENTIAL_FIELDS)
        ]
        if missing:
            raise missing_fields_error(missing)

        contradictory = [
            f"storage.{name}"
            for backend, names in BACKEND_ONLY_FIELDS.items()
            if backend != self.driver
            for name in names
            if getattr(self, name) and name not in BACKEND_ONLY_FIELDS[self.driver]
        ]
        if contradictory:
            quoted = ", ".join(f"'{name}'" for name in contradictory)
            raise ConfigurationError(
                f"Fields not supported by storage driver '{self.driver}': {quoted}",
                fields=contradictory,
            )

    def with_credentials(self, credentials: AwsCredentials) -> "StorageConfig":
        """Return a new configuration carrying the dynamic credentials."""
        return self.model_copy(
            update={
                "access_key_id": credentials.access_key_id,
                "secret_access_key": credentials.secret_access_key,
                "session_token": credentials.session_token,
            }
        )


# --- Main Settings ---


class Settings(BaseSettings):
    """Process-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="TFSTATE_RESOURCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in pipelines")

    terraform_binary: str = Field(default="terraform", description="Path to the terraform CLI")
    vault_timeout_seconds: float = Field(default=30.0)
    tmp_dir: str = Field(
        default="",
        description="Parent directory for per-request scratch space (system default if empty)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
