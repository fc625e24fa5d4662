"""S3 client construction, scoped to a single request."""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

import boto3
from botocore.config import Config

from document_gateway.adapters.storage import S3ObjectStore
from document_gateway.config.settings import Settings

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


def create_s3_client(settings: Settings) -> "S3Client":
    """Create an S3 client with timeouts and retries taken from settings."""
    client_kwargs = {
        "region_name": settings.aws_region,
        "config": Config(
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_read_timeout,
            retries={"total_max_attempts": settings.s3_max_attempts, "mode": "standard"},
        ),
    }

    # Explicit credentials win; otherwise boto3 falls back to its own chain (IAM role, profile)
    if settings.aws_access_key_id:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
    if settings.aws_secret_access_key:
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    if settings.aws_endpoint_url:
        client_kwargs["endpoint_url"] = settings.aws_endpoint_url

    return boto3.client("s3", **client_kwargs)


@contextmanager
def open_object_store(settings: Settings) -> Iterator[S3ObjectStore]:
    """
    Yield an object store backed by a fresh S3 client.

    The client is closed on every exit path: success, validation failure
    and backend failure.
    """
    s3_client = create_s3_client(settings)
    logger.debug(f"Opened S3 client for bucket '{settings.s3_bucket_name}'")
    try:
        yield S3ObjectStore(s3_client, settings.s3_bucket_name)
    finally:
        s3_client.close()
        logger.debug("Closed S3 client")
