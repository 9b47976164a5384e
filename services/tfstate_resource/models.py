"""
Request and response models for the check and in commands.

The wire format is the pipeline resource protocol: a JSON object on stdin,
a JSON object (or array, for check) on stdout. Versions are flat maps of
strings.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from tfstate_resource.config import StorageBackend, StorageConfig, VaultConfig
from tfstate_resource.errors import ConfigurationError, missing_fields_error
from tfstate_resource.storage.keys import env_name_from_key, state_key
from tfstate_resource.storage.protocol import StorageObjectVersion

# --- Versions ---


class Version(BaseModel):
    """The externally visible version of an environment's state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    env_name: str = Field(default="")
    last_modified: str = Field(default="", alias="lastmodified")
    plan_only: str = Field(default="", description='"true" for a plan that was never applied')

    @classmethod
    def from_storage(cls, version: StorageObjectVersion, plan_only: bool = False) -> "Version":
        """Derive the wire version from a physical object version."""
        return cls(
            env_name=env_name_from_key(version.key),
            last_modified=version.last_modified.astimezone(UTC).isoformat(),
            plan_only="true" if plan_only else "",
        )

    @property
    def is_zero(self) -> bool:
        return not (self.env_name or self.last_modified or self.plan_only)

    @property
    def is_plan(self) -> bool:
        return self.plan_only.lower() == "true"

    @property
    def state_key(self) -> str:
        return state_key(self.env_name)

    def last_modified_time(self) -> datetime:
        """Parse `lastmodified`; naive timestamps are taken as UTC."""
        try:
            parsed = datetime.fromisoformat(self.last_modified)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid version: 'lastmodified' is not a timestamp: {self.last_modified!r}",
                fields=["version.lastmodified"],
            ) from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    def validate_fields(self) -> None:
        """Structural validation; a malformed version is never treated as absent."""
        missing = []
        if not self.env_name:
            missing.append("version.env_name")
        if not self.last_modified:
            missing.append("version.lastmodified")
        if missing:
            raise missing_fields_error(missing)
        self.last_modified_time()

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_defaults=True)


# --- Requests ---


class Source(BaseModel):
    """Resource source configuration shared by every command."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    vault: VaultConfig | None = Field(
        default=None,
        description="Dynamic credentials; absent means static storage credentials",
    )
    env_name: str = Field(default="", description="Pin check to one environment")
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the terraform binary",
    )

    def validate_fields(self) -> None:
        """Validate storage and Vault configuration before any network access."""
        if self.vault is not None:
            self.vault.validate_fields()
            if self.storage.driver != StorageBackend.S3:
                raise ConfigurationError(
                    f"'vault' issues AWS credentials and cannot be used with "
                    f"storage driver '{self.storage.driver}'",
                    fields=["vault"],
                )
        self.storage.validate_fields(require_credentials=self.vault is None)


class Action(StrEnum):
    """Intent carried by get params."""

    NONE = ""
    DESTROY = "destroy"


class InParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    action: Action = Field(default=Action.NONE)
    output_statefile: bool = Field(default=False)
    output_module: str = Field(default="")


class CheckRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    source: Source = Field(default_factory=Source)
    version: Version | None = None


class InRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    source: Source = Field(default_factory=Source)
    version: Version = Field(default_factory=Version)
    params: InParams = Field(default_factory=InParams)

    @property
    def is_destroy(self) -> bool:
        return self.params.action == Action.DESTROY


# --- Responses ---


class MetadataField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class InResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: Version
    metadata: list[MetadataField] = Field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            "version": self.version.to_wire(),
            "metadata": [field.model_dump() for field in self.metadata],
        }
