"""
Object storage for complaint images.

Images are stored under ``{user_id}/{epoch_millis}.{ext}`` and addressed by a
public URL that is saved on the complaint. Two backends are provided: the
local filesystem (served by the app under ``/storage``) for development and
tests, and S3 or any S3-compatible service for deployments.

The size ceiling is enforced before any bytes reach the backend.
"""

from __future__ import annotations

from functools import lru_cache
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import io
import logging
import time

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from .config import get_settings
from .errors import TransientStorageError, ValidationError
from .upload_metrics import (
    UPLOAD_ATTEMPTS,
    UPLOAD_FAILURES,
    UPLOAD_REJECTED,
    UPLOAD_SUCCESSES,
)

logger = logging.getLogger("quirii.storage")

BUCKET_PREFIX = "complaint-images"
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
_MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class ImageStore:
    """Interface: put bytes at a relative path, get back a public URL."""

    def put(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError


class LocalImageStore(ImageStore):
    def __init__(self, root: Path, public_base_url: str = "") -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self.root / BUCKET_PREFIX / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise TransientStorageError(f"Failed to store image: {exc}") from exc
        logger.info("Stored image locally: %s", target)
        return f"{self.public_base_url}/storage/{BUCKET_PREFIX}/{path}"

    def delete(self, path: str) -> None:
        try:
            (self.root / BUCKET_PREFIX / path).unlink(missing_ok=True)
        except OSError as exc:
            raise TransientStorageError(f"Failed to delete image: {exc}") from exc


class S3ImageStore(ImageStore):
    """Public-read bucket (or CloudFront distribution) holding complaint images."""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        cloudfront_domain: Optional[str] = None,
    ) -> None:
        session_kwargs = {}
        if access_key_id and secret_access_key:
            session_kwargs.update(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        session = boto3.session.Session(**session_kwargs)

        client_kwargs = {
            "service_name": "s3",
            "region_name": region,
            "config": Config(signature_version="s3v4"),
        }
        if endpoint:
            client_kwargs["endpoint_url"] = endpoint
        self._client = session.client(**client_kwargs)
        self._bucket = bucket
        self._region = region
        self._endpoint = endpoint.rstrip("/") if endpoint else None
        self._cloudfront_domain = cloudfront_domain

    def key_for(self, path: str) -> str:
        return f"{BUCKET_PREFIX}/{path}"

    def public_url(self, key: str) -> str:
        if self._cloudfront_domain:
            return f"https://{self._cloudfront_domain}/{key}"
        if self._endpoint:
            return f"{self._endpoint}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        key = self.key_for(path)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransientStorageError(f"put_object failed for {key}: {exc}") from exc
        return self.public_url(key)

    def delete(self, path: str) -> None:
        key = self.key_for(path)
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise TransientStorageError(f"delete_object failed for {key}: {exc}") from exc


@lru_cache()
def get_image_store() -> ImageStore:
    settings = get_settings()
    if settings.storage_provider == "s3":
        store = S3ImageStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            cloudfront_domain=settings.cloudfront_domain,
        )
    else:
        store = LocalImageStore(Path(settings.local_storage_path), settings.public_base_url)
    logger.info("Image storage initialized (provider=%s)", settings.storage_provider)
    return store


@dataclass(frozen=True)
class StoredImage:
    path: str
    url: str


def image_extension(file_name: str) -> str:
    return file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


def check_image_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        UPLOAD_REJECTED.labels(reason="too_large").inc()
        raise ValidationError(f"Image must be less than {max_bytes // (1024 * 1024)}MB")


def validate_image(data: bytes, file_name: str, max_bytes: int) -> str:
    """Check size, extension and decodability; return the normalized extension."""
    check_image_size(len(data), max_bytes)

    ext = image_extension(file_name)
    if ext not in ALLOWED_EXTENSIONS:
        UPLOAD_REJECTED.labels(reason="extension").inc()
        raise ValidationError(
            f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    try:
        Image.open(io.BytesIO(data)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        UPLOAD_REJECTED.labels(reason="invalid").inc()
        raise ValidationError("Invalid image file") from exc
    return ext


def store_complaint_image(
    store: ImageStore,
    user_id: str,
    file_name: str,
    data: bytes,
    max_bytes: Optional[int] = None,
) -> StoredImage:
    """Validate and upload an image for a complaint by `user_id`."""
    if max_bytes is None:
        max_bytes = get_settings().max_image_bytes
    ext = validate_image(data, file_name, max_bytes)

    UPLOAD_ATTEMPTS.inc()
    path = f"{user_id}/{int(time.time() * 1000)}.{ext}"
    try:
        url = store.put(path, data, _MIME_BY_EXTENSION[ext])
    except TransientStorageError:
        UPLOAD_FAILURES.inc()
        logger.error("Image upload failed for user %s", user_id)
        raise
    UPLOAD_SUCCESSES.inc()
    return StoredImage(path=path, url=url)


def discard_complaint_image(store: ImageStore, image: StoredImage) -> bool:
    """Remove an image whose complaint never got saved. Failures are logged, not raised."""
    try:
        store.delete(image.path)
    except TransientStorageError as exc:
        logger.error("Orphaned complaint image left at %s: %s", image.url, exc)
        return False
    logger.info("Discarded orphaned complaint image %s", image.url)
    return True


__all__ = [
    "ImageStore",
    "LocalImageStore",
    "S3ImageStore",
    "StoredImage",
    "get_image_store",
    "check_image_size",
    "validate_image",
    "store_complaint_image",
    "discard_complaint_image",
    "ALLOWED_EXTENSIONS",
]
