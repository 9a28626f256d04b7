"""Client downloads against the gallery-wide quota, plus admin previews."""

import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from clientgallery.core.errors import FileMissing, NotFound, QuotaExceeded
from clientgallery.models.gallery import Download, Gallery, GalleryImage
from clientgallery.services.storage import GalleryStorage

audit = logging.getLogger("audit")


@dataclass
class DownloadPayload:
    content: bytes
    media_type: str
    filename: str
    downloads_used: Optional[int] = None
    download_limit: Optional[int] = None

    @property
    def downloads_remaining(self) -> Optional[int]:
        if self.downloads_used is None or self.download_limit is None:
            return None
        return max(0, self.download_limit - self.downloads_used)


def media_type_for(file_name: str) -> str:
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"


def count_downloads(db: Session, gallery_id: int) -> int:
    """Quota consumption: every Download row for the gallery, whichever client made it."""
    return int(
        db.query(func.count(Download.DownloadID))
        .filter(Download.GalleryID == gallery_id)
        .scalar()
        or 0
    )


def download_image(
    db: Session,
    storage: GalleryStorage,
    gallery: Gallery,
    image_id: int,
    client_ip: str,
    user_agent: Optional[str] = None,
) -> DownloadPayload:
    """Serve the full variant of one image and charge it to the gallery quota.

    The gallery row is locked for the count-check-insert sequence so two
    concurrent downloads cannot both see the last free slot.
    """
    locked = (
        db.query(Gallery)
        .filter(Gallery.GalleryID == gallery.GalleryID)
        .with_for_update()
        .one()
    )
    image = (
        db.query(GalleryImage)
        .filter(
            GalleryImage.ImageID == image_id,
            GalleryImage.GalleryID == locked.GalleryID,
            GalleryImage.IsPublic.is_(True),
        )
        .first()
    )
    if image is None:
        db.rollback()
        raise NotFound("Gallery or image not found.")

    used = count_downloads(db, locked.GalleryID)
    limit = int(locked.DownloadLimit or 0)
    if used >= limit:
        db.rollback()
        audit.warning(
            "gallery.download.quota_exceeded",
            extra={
                "gallery_id": locked.GalleryID,
                "image_id": image_id,
                "client": client_ip,
                "downloads_used": used,
                "download_limit": limit,
            },
        )
        raise QuotaExceeded()

    try:
        content = storage.read(image.FilePath)
    except FileMissing:
        db.rollback()
        audit.error(
            "gallery.download.file_missing",
            extra={"gallery_id": locked.GalleryID, "image_id": image_id, "key": image.FilePath},
        )
        raise

    db.add(
        Download(
            GalleryID=locked.GalleryID,
            ImageID=image.ImageID,
            ClientIP=client_ip or "unknown",
            UserAgent=user_agent,
        )
    )
    db.commit()
    audit.info(
        "gallery.download.success",
        extra={
            "gallery_id": gallery.GalleryID,
            "image_id": image.ImageID,
            "client": client_ip,
            "downloads_used": used + 1,
        },
    )
    return DownloadPayload(
        content=content,
        media_type=media_type_for(image.FileName),
        filename=image.OriginalName or image.FileName,
        downloads_used=used + 1,
        download_limit=limit,
    )


def admin_download_image(
    db: Session, storage: GalleryStorage, gallery_id: int, image_id: int
) -> DownloadPayload:
    """Preview download for administrators: no quota check, no Download row."""
    image = (
        db.query(GalleryImage)
        .filter(GalleryImage.ImageID == image_id, GalleryImage.GalleryID == gallery_id)
        .first()
    )
    if image is None:
        raise NotFound("Image not found.")
    content = storage.read(image.FilePath)
    return DownloadPayload(
        content=content,
        media_type=media_type_for(image.FileName),
        filename=image.OriginalName or image.FileName,
    )


def read_thumbnail(storage: GalleryStorage, image: GalleryImage) -> DownloadPayload:
    key = image.ThumbnailPath or image.FilePath
    return DownloadPayload(
        content=storage.read(key),
        media_type=media_type_for(key),
        filename=f"thumb_{image.FileName}",
    )
