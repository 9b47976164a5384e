"""Dynamic AWS credentials from Vault.

Performs a logical write against the secrets engine path (the AWS engine's
`sts` and `creds` endpoints accept a `ttl`) and maps the response onto
AwsCredentials. Lease renewal is not handled: the credentials only need to
outlive one request.
"""

import httpx

from tfstate_resource.config import AwsCredentials, StorageConfig, VaultConfig, settings
from tfstate_resource.errors import AuthenticationError
from tfstate_resource.logging_config import get_logger

logger = get_logger(__name__)


async def get_aws_credentials(
    vault: VaultConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AwsCredentials:
    """Request short-lived credentials from Vault.

    The configuration must already be validated. Any HTTP failure or a
    response without both keys is an AuthenticationError.
    """
    url = f"{vault.address.rstrip('/')}/v1/{vault.secret_path.lstrip('/')}"

    try:
        async with httpx.AsyncClient(
            transport=transport,
            verify=not vault.tls_skip_verify,
            timeout=settings.vault_timeout_seconds,
        ) as client:
            resp = await client.put(
                url,
                headers={"X-Vault-Token": vault.token},
                json={"ttl": vault.ttl},
            )
            resp.raise_for_status()
            payload = resp.json()
    except httpx.HTTPStatusError as e:
        raise AuthenticationError(
            f"Vault returned {e.response.status_code} for '{vault.secret_path}'"
        ) from e
    except (httpx.HTTPError, ValueError) as e:
        raise AuthenticationError(f"Failed to reach Vault at '{vault.address}': {e}") from e

    data = payload.get("data") or {}
    credentials = AwsCredentials(
        access_key_id=data.get("access_key") or "",
        secret_access_key=data.get("secret_key") or "",
        session_token=data.get("security_token") or "",
    )
    if not credentials.is_complete:
        raise AuthenticationError(
            f"Vault response for '{vault.secret_path}' did not contain "
            "'access_key' and 'secret_key'"
        )

    logger.info(
        "Fetched dynamic credentials",
        secret_path=vault.secret_path,
        lease_duration=payload.get("lease_duration"),
    )
    return credentials


async def resolve_storage_config(
    storage: StorageConfig,
    vault: VaultConfig | None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[StorageConfig, AwsCredentials | None]:
    """Produce the storage configuration a request should use.

    Without a Vault block the source's configuration is returned as-is.
    With one, it is validated, credentials are fetched, and a new
    configuration carrying them is returned alongside the credentials.
    """
    if vault is None:
        return storage, None

    vault.validate_fields()
    credentials = await get_aws_credentials(vault, transport=transport)
    return storage.with_credentials(credentials), credentials
