"""
Asset host abstraction for S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from wedding_api.errors import UploadError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

EXTENSION_PATTERN = re.compile(r"[a-z0-9]{1,8}")


@dataclass(frozen=True)
class StoredAsset:
    key: str
    url: str


class MediaStorage(Protocol):
    """Defines the operations the API needs from the asset host."""

    def upload(
        self, data: bytes, content_type: str, *, prefix: str = "", filename: str = ""
    ) -> StoredAsset:
        ...

    def delete(self, key: str) -> None:
        ...


def build_asset_key(prefix: str, content_type: str, filename: str = "") -> str:
    """Generate a unique storage key, keeping the upload's extension."""
    extension = filename.rsplit(".", 1)[1].lower() if "." in filename else ""
    if EXTENSION_PATTERN.fullmatch(extension):
        extension = "." + extension
    else:
        # Client text outside a plain extension never reaches the key or URL.
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        extension = mimetypes.guess_extension(media_type) or ""
    name = f"{uuid.uuid4().hex}{extension}"
    return f"{prefix.strip('/')}/{name}" if prefix else name


@dataclass
class InMemoryMediaStorage:
    """Test double for asset host interactions."""

    base_url: str = "https://assets.example.test"
    stored_objects: dict = field(default_factory=dict)
    fail_uploads: bool = False

    def upload(
        self, data: bytes, content_type: str, *, prefix: str = "", filename: str = ""
    ) -> StoredAsset:
        if self.fail_uploads:
            raise UploadError("Asset upload failed", detail="simulated failure")
        key = build_asset_key(prefix, content_type, filename)
        self.stored_objects[key] = (data, content_type)
        return StoredAsset(key=key, url=f"{self.base_url}/{key}")

    def delete(self, key: str) -> None:
        self.stored_objects.pop(key, None)


@dataclass
class S3MediaStorage:
    """
    S3-compatible asset host client. Objects are written with a public-read
    ACL and addressed through ``public_base_url`` when one is configured.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None
    timeout: float = 10.0

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy most S3-compatible hosts.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
            retries={"max_attempts": 1},
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{key}"

    def upload(
        self, data: bytes, content_type: str, *, prefix: str = "", filename: str = ""
    ) -> StoredAsset:
        key = build_asset_key(prefix, content_type, filename)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
                ACL="public-read",
            )
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            logger.error("Asset host timed out uploading %s: %s", key, e)
            raise UpstreamUnavailableError("Asset host unavailable", detail=str(e)) from e
        except (BotoCoreError, ClientError) as e:
            logger.exception("Upload failed for %s", key)
            raise UploadError("Asset upload failed", detail=str(e)) from e
        url = self.public_url(key)
        logger.info("File uploaded successfully: %s", url)
        return StoredAsset(key=key, url=url)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.exception("Delete failed for %s", key)
            raise UploadError("Asset delete failed", detail=str(e)) from e
