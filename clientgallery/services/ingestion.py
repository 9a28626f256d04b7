"""Upload pipeline: validate, render variants, store, record.

Each file is handled on its own. A bad file is reported in the result and the
rest of the batch carries on.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clientgallery.core.errors import GalleryError, StorageError, ValidationError
from clientgallery.core.settings import settings
from clientgallery.models.gallery import Gallery, GalleryImage
from clientgallery.services import imaging
from clientgallery.services.mime_utils import check_upload_mime
from clientgallery.services.storage import (
    GalleryStorage,
    full_key,
    thumbnail_key,
    watermark_key,
)

audit = logging.getLogger("audit")
logger = logging.getLogger(__name__)


@dataclass
class IncomingFile:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class IngestFailure:
    file_name: str
    error: str
    message: str

    def to_dict(self) -> dict:
        return {"fileName": self.file_name, "error": self.error, "message": self.message}


@dataclass
class IngestResult:
    created: List[GalleryImage] = field(default_factory=list)
    failures: List[IngestFailure] = field(default_factory=list)


def image_to_dict(image: GalleryImage) -> dict:
    return {
        "id": image.ImageID,
        "fileName": image.FileName,
        "originalName": image.OriginalName,
        "filePath": image.FilePath,
        "thumbnailPath": image.ThumbnailPath,
        "watermarkPath": image.WatermarkPath,
        "fileSize": image.FileSize,
        "width": image.Width,
        "height": image.Height,
        "order": image.Order,
        "isPublic": bool(image.IsPublic),
    }


def next_order(db: Session, gallery_id: int) -> int:
    current = (
        db.query(func.max(GalleryImage.Order))
        .filter(GalleryImage.GalleryID == gallery_id)
        .scalar()
    )
    return 0 if current is None else int(current) + 1


def validate_upload(upload: IncomingFile) -> str:
    """Return the accepted MIME type or raise ValidationError."""
    if not upload.data:
        raise ValidationError("File is empty.", code="empty_file")
    max_bytes = int(settings.MAX_UPLOAD_BYTES)
    if max_bytes and len(upload.data) > max_bytes:
        raise ValidationError(
            f"File exceeds the {max_bytes // (1024 * 1024)} MB limit.", code="file_too_large"
        )
    ok, mime = check_upload_mime(
        upload.data, upload.content_type, tuple(settings.ALLOWED_UPLOAD_MIME_TYPES)
    )
    if not ok:
        raise ValidationError(
            "Only JPEG, PNG and WebP images are allowed.", code="unsupported_type"
        )
    return mime


def _store_variants(
    storage: GalleryStorage, gallery: Gallery, upload: IncomingFile, mime: str
) -> tuple[GalleryImage, list[str]]:
    ext = imaging.pick_extension(upload.filename, mime)
    fmt = imaging.FORMATS[ext]
    file_name = f"{uuid.uuid4().hex}{ext}"
    im = imaging.open_image(upload.data)

    full = imaging.render_full(im, fmt, settings.FULL_MAX_DIMENSION, settings.FULL_QUALITY)
    thumb = imaging.render_thumbnail(im, fmt, settings.THUMBNAIL_SIZE, settings.THUMBNAIL_QUALITY)
    marked = imaging.render_watermark(
        im,
        fmt,
        settings.WATERMARK_TEXT,
        settings.WATERMARK_OPACITY,
        settings.FULL_MAX_DIMENSION,
        settings.FULL_QUALITY,
    )

    written: list[str] = []
    keys = [
        (full_key(gallery.Slug, file_name), full),
        (thumbnail_key(gallery.Slug, file_name), thumb),
    ]
    if marked is not None:
        keys.append((watermark_key(gallery.Slug, file_name), marked))
    for key, variant in keys:
        storage.save(key, variant.data, content_type=mime)
        written.append(key)

    image = GalleryImage(
        GalleryID=gallery.GalleryID,
        FileName=file_name,
        OriginalName=(upload.filename or file_name)[:255],
        FilePath=keys[0][0],
        ThumbnailPath=keys[1][0],
        WatermarkPath=keys[2][0] if marked is not None else None,
        FileSize=len(full.data),
        Width=full.width,
        Height=full.height,
        IsPublic=True,
    )
    return image, written


def _discard(storage: GalleryStorage, keys: Iterable[str]) -> None:
    for key in keys:
        try:
            storage.delete(key)
        except StorageError:
            logger.warning("ingest.cleanup_failed", extra={"key": key})


def ingest_images(
    db: Session,
    storage: GalleryStorage,
    gallery: Gallery,
    files: Iterable[IncomingFile],
    request_id: Optional[str] = None,
) -> IngestResult:
    result = IngestResult()
    storage.ensure_gallery(gallery.Slug)
    order = next_order(db, gallery.GalleryID)

    for upload in files:
        name = upload.filename or "unnamed"
        written: list[str] = []
        try:
            mime = validate_upload(upload)
            image, written = _store_variants(storage, gallery, upload, mime)
            image.Order = order
            db.add(image)
            db.commit()
            db.refresh(image)
        except GalleryError as exc:
            db.rollback()
            _discard(storage, written)
            result.failures.append(IngestFailure(name, exc.code, exc.message))
            audit.warning(
                "gallery.ingest.rejected",
                extra={
                    "gallery_id": gallery.GalleryID,
                    "file": name,
                    "reason": exc.code,
                    "request_id": request_id,
                },
            )
            continue
        except (SQLAlchemyError, OSError, ValueError):
            db.rollback()
            _discard(storage, written)
            logger.exception(
                "gallery.ingest.failed",
                extra={"gallery_id": gallery.GalleryID, "file": name, "request_id": request_id},
            )
            result.failures.append(
                IngestFailure(name, "processing_failed", "The image could not be processed.")
            )
            continue
        order += 1
        result.created.append(image)

    audit.info(
        "gallery.ingest.completed",
        extra={
            "gallery_id": gallery.GalleryID,
            "created": len(result.created),
            "failed": len(result.failures),
            "request_id": request_id,
        },
    )
    return result
