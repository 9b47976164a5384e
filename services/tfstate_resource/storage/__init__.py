"""
Storage driver abstraction layer for the tfstate resource.

Provides build_driver(), which turns a validated StorageConfig into the one
driver instance a request uses.
"""

from __future__ import annotations

from tfstate_resource.config import StorageBackend, StorageConfig
from tfstate_resource.logging_config import get_logger
from tfstate_resource.storage.protocol import StorageDriver

logger = get_logger(__name__)


def build_driver(cfg: StorageConfig) -> StorageDriver:
    """Construct the storage driver selected by `cfg.driver`.

    Validation runs first; a ConfigurationError is raised before any SDK
    object is created. SDK clients open lazily on the first call.
    """
    cfg.validate_fields()

    match cfg.driver:
        case StorageBackend.S3:
            from tfstate_resource.storage.s3 import S3Driver

            driver: StorageDriver = S3Driver(
                bucket=cfg.bucket,
                prefix=cfg.bucket_path,
                region=cfg.region_name,
                endpoint_url=cfg.endpoint,
                access_key_id=cfg.access_key_id,
                secret_access_key=cfg.secret_access_key,
                session_token=cfg.session_token,
                server_side_encryption=cfg.server_side_encryption,
            )
            logger.info("Storage driver built", backend="s3", bucket=cfg.bucket)

        case StorageBackend.GCS:
            from tfstate_resource.storage.gcs import GCSDriver

            driver = GCSDriver(
                bucket=cfg.bucket,
                prefix=cfg.bucket_path,
                service_account_file=cfg.service_account_file,
            )
            logger.info("Storage driver built", backend="gcs", bucket=cfg.bucket)

        case StorageBackend.AZURE:
            from tfstate_resource.storage.azure import AzureDriver

            driver = AzureDriver(
                account_name=cfg.account_name,
                container_name=cfg.container,
                prefix=cfg.bucket_path,
                account_key=cfg.account_key,
            )
            logger.info("Storage driver built", backend="azure", account=cfg.account_name)

        case StorageBackend.FILESYSTEM:
            from tfstate_resource.storage.filesystem import FilesystemDriver

            driver = FilesystemDriver(root_dir=cfg.root_dir, prefix=cfg.bucket_path)
            logger.info("Storage driver built", backend="filesystem", root_dir=cfg.root_dir)

    return driver


__all__ = ["StorageDriver", "build_driver"]
