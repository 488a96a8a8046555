"""S3 storage helpers used by the upload worker."""
from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import PublishError
from ..models import PublishCredentials

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PUBLIC_READ = "public-read"


def guess_content_type(relative: str) -> str:
    content_type, _ = mimetypes.guess_type(relative, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


class S3Storage:
    """Publish objects into one bucket with a public-read ACL."""

    def __init__(self, credentials: PublishCredentials, *, client: Any) -> None:
        self.credentials = credentials
        self._client = client

    @property
    def bucket(self) -> str:
        return self.credentials.bucket

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ACL=PUBLIC_READ,
            )
        except (BotoCoreError, ClientError) as exc:
            raise PublishError(f"PUT s3://{self.bucket}/{key} failed: {exc}") from exc


StorageFactory = Callable[[PublishCredentials], S3Storage]


def s3_storage_factory(
    *,
    region: str = "us-east-1",
    endpoint_url: Optional[str] = None,
) -> StorageFactory:
    """Return a factory that opens a fresh boto3 client per session."""

    # Retries are owned by the upload worker.
    client_config = Config(retries={"max_attempts": 1, "mode": "standard"})

    def _factory(credentials: PublishCredentials) -> S3Storage:
        session = boto3.session.Session(
            aws_access_key_id=credentials.key,
            aws_secret_access_key=credentials.secret,
            region_name=region,
        )
        kwargs: dict[str, Any] = {"config": client_config}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        return S3Storage(credentials, client=session.client("s3", **kwargs))

    return _factory


@dataclass
class ObjectStoreSession:
    """Active credentials, their storage handle and when they were last used."""

    credentials: PublishCredentials
    storage: S3Storage
    last_used: float


__all__ = [
    "ObjectStoreSession",
    "S3Storage",
    "StorageFactory",
    "guess_content_type",
    "s3_storage_factory",
]
