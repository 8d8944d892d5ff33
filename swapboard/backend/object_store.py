"""Object storage for listing images: local filesystem or DigitalOcean Spaces."""
from __future__ import annotations

import logging
import os
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Protocol
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..config import get_settings
from ..errors import StorageConfigurationError, StorageUploadError
from ..security.secrets import MissingSecretError, require_secrets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """Metadata returned after an object has been written."""

    bucket: str
    path: str
    url: str
    content_type: str
    size: int


class ObjectStore(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> StoredObject: ...

    def public_url(self, bucket: str, path: str) -> str: ...

    def remove(self, bucket: str, paths: Iterable[str]) -> None: ...


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    """Sanitize path segments to be safe for object keys."""

    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def object_key(filename: str | None, folder: str) -> str:
    """Generate a random object key inside ``folder`` keeping a safe file extension."""

    extension = Path(filename or "").suffix.lower()
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""

    folder_segments = _sanitize_segments((folder or "uploads").replace("\\", "/").split("/"))
    safe_folder = "/".join(folder_segments) or "uploads"
    return f"{safe_folder}/{uuid.uuid4().hex}{extension}"


def _normalize_path(path: str) -> str:
    segments = _sanitize_segments(path.replace("\\", "/").split("/"))
    if not segments:
        raise StorageUploadError("Object path is empty")
    return "/".join(segments)


class LocalObjectStore:
    """Writes objects below ``root/<bucket>/`` and serves them from ``base_url``."""

    def __init__(self, root: str | os.PathLike[str], base_url: str) -> None:
        self.root = Path(root).expanduser().resolve()
        self.base_url = base_url.rstrip("/")

    def _target(self, bucket: str, path: str) -> Path:
        return self.root / _normalize_path(bucket) / _normalize_path(path)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> StoredObject:
        target = self._target(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.exception("Writing %s failed", target)
            raise StorageUploadError("Unable to store file") from exc
        return StoredObject(
            bucket=bucket,
            path=_normalize_path(path),
            url=self.public_url(bucket, path),
            content_type=content_type,
            size=len(data),
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{_normalize_path(bucket)}/{_normalize_path(path)}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        for path in paths:
            target = self._target(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s", target, exc_info=True)


@dataclass(frozen=True)
class SpacesConfig:
    """Runtime configuration extracted from environment variables."""

    key: str
    secret: str
    region: str
    bucket: str
    api_endpoint: str
    public_endpoint: str


@lru_cache(maxsize=1)
def load_spaces_config() -> SpacesConfig:
    """Read and validate DigitalOcean Spaces configuration from the environment."""

    try:
        values = require_secrets(
            {
                "DO_SPACES_KEY": None,
                "DO_SPACES_SECRET": None,
                "DO_SPACES_REGION": None,
                "DO_SPACES_NAME": None,
                "DO_SPACES_ENDPOINT": None,
            }
        )
    except MissingSecretError as exc:
        raise StorageConfigurationError(
            "Missing required DigitalOcean Spaces configuration: " + ", ".join(exc.names)
        ) from exc

    key = values["DO_SPACES_KEY"]
    secret = values["DO_SPACES_SECRET"]
    region = values["DO_SPACES_REGION"]
    bucket = values["DO_SPACES_NAME"]
    endpoint_raw = values["DO_SPACES_ENDPOINT"]

    public_endpoint = endpoint_raw.rstrip("/")
    parsed = urlparse(public_endpoint)
    if not parsed.scheme:
        parsed = urlparse(f"https://{public_endpoint.lstrip(':/')}")

    host = parsed.netloc or parsed.path
    if not host or not host.endswith(".digitaloceanspaces.com"):
        raise StorageConfigurationError("DO_SPACES_ENDPOINT must point to a *.digitaloceanspaces.com hostname.")

    return SpacesConfig(
        key=key,
        secret=secret,
        region=region,
        bucket=bucket,
        api_endpoint=f"https://{region}.digitaloceanspaces.com",
        public_endpoint=parsed.geturl().rstrip("/"),
    )


class SpacesObjectStore:
    """Stores objects in a single Spaces bucket, using the logical bucket as a key prefix."""

    def __init__(self, config: SpacesConfig, client: BaseClient | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            session = Session()
            self._client = session.client(
                "s3",
                region_name=self.config.region,
                endpoint_url=self.config.api_endpoint,
                aws_access_key_id=self.config.key,
                aws_secret_access_key=self.config.secret,
            )
        return self._client

    def _key(self, bucket: str, path: str) -> str:
        return f"{_normalize_path(bucket)}/{_normalize_path(path)}"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> StoredObject:
        key = self._key(bucket, path)
        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ACL="public-read",
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
            logger.exception("Upload to DigitalOcean Spaces failed: %s", exc)
            raise StorageUploadError("Upload to DigitalOcean Spaces failed") from exc
        return StoredObject(
            bucket=bucket,
            path=_normalize_path(path),
            url=self.public_url(bucket, path),
            content_type=content_type,
            size=len(data),
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.config.public_endpoint}/{self._key(bucket, path)}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        objects = [{"Key": self._key(bucket, path)} for path in paths if path]
        if not objects:
            return
        try:
            self.client.delete_objects(Bucket=self.config.bucket, Delete={"Objects": objects})
        except (ClientError, BotoCoreError):  # pragma: no cover - network bound
            logger.warning("Failed to delete %d Spaces objects", len(objects), exc_info=True)


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    settings = get_settings()
    backend = settings.storage_backend.strip().lower()
    if backend == "spaces":
        return SpacesObjectStore(load_spaces_config())
    if backend == "local":
        return LocalObjectStore(settings.local_storage_dir, settings.media_base_url)
    raise StorageConfigurationError(f"Unknown STORAGE_BACKEND {settings.storage_backend!r}")


__all__ = [
    "StoredObject",
    "ObjectStore",
    "LocalObjectStore",
    "SpacesConfig",
    "SpacesObjectStore",
    "load_spaces_config",
    "object_key",
    "get_object_store",
]
