"""
Error taxonomy for the tfstate resource.

Every failure that reaches the command-line entry points is a ResourceError.
Storage failures live next to the storage protocol and share this base.
"""


class ResourceError(Exception):
    """Base exception for all request failures."""


class ConfigurationError(ResourceError):
    """Missing, contradictory or malformed request fields.

    Raised before any network I/O happens.
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        self.fields = fields or []
        super().__init__(message)


class AuthenticationError(ResourceError):
    """Dynamic credential retrieval failed."""


class ToolExecutionError(ResourceError):
    """The terraform binary failed or produced unparsable output."""


def missing_fields_error(fields: list[str]) -> ConfigurationError:
    """Build the standard error for a list of missing field names."""
    quoted = ", ".join(f"'{name}'" for name in fields)
    return ConfigurationError(f"Missing fields: {quoted}", fields=fields)
