"""Backing store for gallery image files.

Keys are gallery-scoped relative paths such as ``<slug>/<uuid>.jpg`` and
``<slug>/thumbnails/thumb_<uuid>.jpg``. The local filesystem is the default;
S3 is used when ``STORAGE_BACKEND=s3``.
"""

import logging
import os
import shutil
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from clientgallery.core.errors import FileMissing, StorageError

logger = logging.getLogger(__name__)

THUMBNAILS_DIR = "thumbnails"
WATERMARKED_DIR = "watermarked"


def full_key(slug: str, file_name: str) -> str:
    return f"{slug}/{file_name}"


def thumbnail_key(slug: str, file_name: str) -> str:
    return f"{slug}/{THUMBNAILS_DIR}/thumb_{file_name}"


def watermark_key(slug: str, file_name: str) -> str:
    return f"{slug}/{WATERMARKED_DIR}/wm_{file_name}"


class GalleryStorage:
    """Interface shared by the storage backends."""

    def ensure_gallery(self, slug: str) -> None:
        raise NotImplementedError

    def save(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def remove_gallery(self, slug: str) -> None:
        raise NotImplementedError


class LocalGalleryStorage(GalleryStorage):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        # Keys come from the database, but never let one escape the root
        if os.path.commonpath([self.root, path]) != self.root or path == self.root:
            raise StorageError(f"storage key outside root: {key!r}")
        return path

    def ensure_gallery(self, slug: str) -> None:
        os.makedirs(self._path(f"{slug}/{THUMBNAILS_DIR}"), exist_ok=True)

    def save(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path(key)
        tmp = path + ".tmp"
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(tmp, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except OSError as exc:
            logger.error("storage.write_failed", extra={"key": key}, exc_info=True)
            if os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError() from exc

    def read(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError as exc:
            raise FileMissing() from exc
        except OSError as exc:
            logger.error("storage.read_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("storage.delete_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc

    def remove_gallery(self, slug: str) -> None:
        path = self._path(slug)
        if not os.path.exists(path):
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.error("storage.remove_gallery_failed", extra={"slug": slug}, exc_info=True)
            raise StorageError() from exc


class S3GalleryStorage(GalleryStorage):
    """Stores gallery files in a private S3 bucket under a key prefix."""

    def __init__(
        self,
        bucket: str,
        region: str = "",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        prefix: str = "galleries",
        client=None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = client or boto3.client(
            "s3",
            region_name=region or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
        )
        logger.info("S3 gallery storage initialized", extra={"bucket": bucket})

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def ensure_gallery(self, slug: str) -> None:
        # S3 has no directories
        return None

    def save(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self._key(key),
                Body=data,
                ContentType=content_type,
                ServerSideEncryption="AES256",
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("storage.s3.upload_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc

    def read(self, key: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
            return obj["Body"].read()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                raise FileMissing() from exc
            logger.error("storage.s3.read_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc
        except BotoCoreError as exc:
            logger.error("storage.s3.read_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(key))
            return True
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                return False
            raise StorageError() from exc

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(key))
        except (ClientError, BotoCoreError) as exc:
            logger.error("storage.s3.delete_failed", extra={"key": key}, exc_info=True)
            raise StorageError() from exc

    def remove_gallery(self, slug: str) -> None:
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self._key(f"{slug}/")):
                keys = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if keys:
                    self.client.delete_objects(Bucket=self.bucket, Delete={"Objects": keys})
        except (ClientError, BotoCoreError) as exc:
            logger.error("storage.s3.remove_gallery_failed", extra={"slug": slug}, exc_info=True)
            raise StorageError() from exc


def build_storage(settings) -> GalleryStorage:
    backend = (settings.STORAGE_BACKEND or "local").lower()
    if backend == "s3":
        if not settings.S3_GALLERIES_BUCKET:
            raise RuntimeError("STORAGE_BACKEND=s3 requires S3_GALLERIES_BUCKET")
        return S3GalleryStorage(
            bucket=settings.S3_GALLERIES_BUCKET,
            region=settings.AWS_REGION,
            access_key=settings.AWS_ACCESS_KEY_ID or None,
            secret_key=settings.AWS_SECRET_ACCESS_KEY or None,
        )
    logger.info("Using local gallery storage", extra={"root": settings.STORAGE_ROOT})
    return LocalGalleryStorage(settings.STORAGE_ROOT)
