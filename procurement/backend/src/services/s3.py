"""S3-backed blob store for rendered approval documents."""

from __future__ import annotations

import re
import urllib.parse
from functools import lru_cache
from io import BytesIO
from pathlib import Path

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
import structlog

from procurement.backend.src.core.config import Settings, get_settings
from procurement.backend.src.core.storage import BlobStoreError

LOGGER = structlog.get_logger(__name__)


@lru_cache()
def _resolve_bucket_region() -> str | None:
    """Return the region for the configured S3 bucket."""

    settings = get_settings()

    if settings.local_storage_enabled:
        return None

    session_kwargs: dict[str, str] = {}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        session_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        session_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    try:
        session = boto3.session.Session(**session_kwargs)
        client = session.client("s3", config=Config(signature_version="s3v4"))
        response = client.get_bucket_location(Bucket=settings.aws_s3_bucket)
        region = response.get("LocationConstraint") or "us-east-1"
        LOGGER.info("resolved_s3_region", bucket=settings.aws_s3_bucket, region=region)
        return region
    except (BotoCoreError, NoCredentialsError, ClientError) as exc:
        LOGGER.warning("resolve_s3_region_failed", error=str(exc))
        return None


def _client(settings: Settings) -> BaseClient:
    client_kwargs: dict[str, object] = {
        "config": Config(
            signature_version="s3v4",
            s3={"addressing_style": "virtual"},
        ),
    }

    client_kwargs["region_name"] = settings.aws_region or _resolve_bucket_region() or "us-east-1"

    if settings.aws_access_key_id and settings.aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

    return boto3.client("s3", **client_kwargs)


def sanitize_object_key(key: str) -> str:
    """Minimal, safe normalization that preserves exact S3 key semantics."""

    if not key:
        return ""

    sanitized = str(key).strip().strip('"').strip("'")
    sanitized = urllib.parse.unquote(sanitized)
    sanitized = re.sub(r"/+", "/", sanitized)
    if sanitized.startswith("/"):
        sanitized = sanitized[1:]
    return sanitized


class S3BlobStore:
    """Blob store backed by S3, or a local directory when the bucket is ``local``.

    Uploaded objects are addressed by their public S3 URL
    (``https://<bucket>.s3.<region>.amazonaws.com/<key>``) or, in local mode,
    by a ``file://`` URI under ``LOCAL_STORAGE_PATH``.
    """

    def __init__(self, settings: Settings | None = None, client: BaseClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    @property
    def bucket(self) -> str:
        return self.settings.aws_s3_bucket

    @property
    def local_mode(self) -> bool:
        return self.settings.local_storage_enabled

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = _client(self.settings)
        return self._client

    def _local_root(self) -> Path:
        root = Path(self.settings.local_storage_path)
        root.mkdir(parents=True, exist_ok=True)
        return root

    def object_url(self, key: str) -> str:
        region = self.settings.aws_region or "us-east-1"
        quoted = urllib.parse.quote(key, safe="/")
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{quoted}"

    def key_from_url(self, url: str) -> str:
        """Return the object key addressed by ``url``."""

        parsed = urllib.parse.urlparse(url)
        if parsed.scheme in {"http", "https"}:
            return sanitize_object_key(parsed.path)
        if parsed.scheme == "s3":
            return sanitize_object_key(parsed.path)
        raise BlobStoreError(f"Unsupported document URL: {url}")

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        object_key = sanitize_object_key(key)

        if self.local_mode:
            destination = self._local_root() / object_key
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_bytes(data)
            except OSError as exc:
                LOGGER.error("local_store_failed", key=object_key, error=str(exc))
                raise BlobStoreError(str(exc)) from exc
            LOGGER.info("stored_local", key=object_key, path=str(destination))
            return destination.resolve().as_uri()

        try:
            self.client.upload_fileobj(
                Fileobj=BytesIO(data),
                Bucket=self.bucket,
                Key=object_key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, NoCredentialsError, ClientError) as exc:
            LOGGER.error("s3_upload_failed", key=object_key, error=str(exc))
            raise BlobStoreError(str(exc)) from exc

        LOGGER.info("uploaded_s3", bucket=self.bucket, key=object_key)
        return self.object_url(object_key)

    def fetch(self, url: str) -> bytes:
        parsed = urllib.parse.urlparse(url)

        if parsed.scheme == "file":
            path = Path(urllib.parse.unquote(parsed.path))
            try:
                return path.read_bytes()
            except OSError as exc:
                LOGGER.error("local_fetch_failed", url=url, error=str(exc))
                raise BlobStoreError(str(exc)) from exc

        object_key = self.key_from_url(url)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=object_key)
            return response["Body"].read()
        except (BotoCoreError, NoCredentialsError, ClientError) as exc:
            LOGGER.error("s3_fetch_failed", key=object_key, error=str(exc))
            raise BlobStoreError(str(exc)) from exc

    def delete(self, key: str) -> None:
        object_key = sanitize_object_key(key)

        if self.local_mode:
            (self._local_root() / object_key).unlink(missing_ok=True)
            return

        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_key)
        except (BotoCoreError, NoCredentialsError, ClientError) as exc:
            LOGGER.error("s3_delete_failed", key=object_key, error=str(exc))
            raise BlobStoreError(str(exc)) from exc


__all__ = ["S3BlobStore", "sanitize_object_key"]
