"""Gallery administration and the client-facing gallery view."""

import calendar
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clientgallery.core.errors import Conflict, NotFound, StorageError, ValidationError
from clientgallery.core.settings import settings
from clientgallery.models.gallery import Download, Favorite, Gallery, GalleryAccess, GalleryImage
from clientgallery.services.access import gallery_descriptor, is_expired, record_access
from clientgallery.services.auth import hash_password
from clientgallery.services.downloads import count_downloads
from clientgallery.services.favorites import favorite_image_ids
from clientgallery.services.ingestion import image_to_dict
from clientgallery.services.ordering import rebuild_gallery_order
from clientgallery.services.storage import GalleryStorage

audit = logging.getLogger("audit")
logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50
MIN_PASSWORD_LENGTH = 4
BULK_OPERATIONS = ("delete", "toggle_public", "set_public", "set_private")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + int(months)
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _slug_part(value: str) -> str:
    cleaned = re.sub(r"[^a-z0-9\s]", "", (value or "").lower())
    return re.sub(r"\s+", "-", cleaned.strip())


def generate_slug(title: str, client_name: str, year: Optional[int] = None) -> str:
    """``"Smith Wedding", "John Smith", 2024`` -> ``smith-wedding-john-smith-2024``."""
    if year is None:
        year = _utcnow().year
    slug = f"{_slug_part(title)}-{_slug_part(client_name)}-{year}"
    return slug[:SLUG_MAX_LENGTH]


def _require(value, field: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required.")
    return value.strip() if isinstance(value, str) else value


def _check_download_limit(value) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError("downloadLimit must be a whole number.")
    if limit < 0:
        raise ValidationError("downloadLimit must be zero or greater.")
    return limit


def _check_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return password


def get_gallery(db: Session, gallery_id: int) -> Gallery:
    gallery = db.query(Gallery).filter(Gallery.GalleryID == gallery_id).first()
    if gallery is None:
        raise NotFound("Gallery not found.")
    return gallery


def gallery_to_dict(gallery: Gallery, image_count: int = 0, download_count: int = 0) -> dict:
    return {
        "id": gallery.GalleryID,
        "title": gallery.Title,
        "description": gallery.Description,
        "slug": gallery.Slug,
        "clientName": gallery.ClientName,
        "clientEmail": gallery.ClientEmail,
        "eventType": gallery.EventType,
        "eventDate": gallery.EventDate.isoformat() if gallery.EventDate else None,
        "isActive": bool(gallery.IsActive),
        "isExpired": is_expired(gallery),
        "expiryDate": gallery.ExpiryDate.isoformat() if gallery.ExpiryDate else None,
        "downloadLimit": gallery.DownloadLimit,
        "imageCount": image_count,
        "downloadCount": download_count,
        "createdAt": gallery.CreatedAt.isoformat() if gallery.CreatedAt else None,
        "updatedAt": gallery.UpdatedAt.isoformat() if gallery.UpdatedAt else None,
    }


def create_gallery(
    db: Session,
    storage: GalleryStorage,
    owner_id: int,
    title: str,
    client_name: str,
    client_email: str,
    password: str,
    description: Optional[str] = None,
    event_type: Optional[str] = None,
    event_date: Optional[datetime] = None,
    download_limit: Optional[int] = None,
    expiry_months: Optional[int] = None,
) -> Gallery:
    title = _require(title, "title")
    client_name = _require(client_name, "clientName")
    client_email = _require(client_email, "clientEmail")
    _require(password, "password")
    _check_password(password)
    limit = _check_download_limit(
        settings.DEFAULT_DOWNLOAD_LIMIT if download_limit is None else download_limit
    )
    months = settings.DEFAULT_EXPIRY_MONTHS if expiry_months is None else int(expiry_months)
    if months <= 0:
        raise ValidationError("expiryMonths must be at least 1.")

    year = event_date.year if event_date else _utcnow().year
    slug = generate_slug(title, client_name, year)
    if not slug.strip("-"):
        raise ValidationError("Title and client name must contain letters or digits.")
    if db.query(Gallery.GalleryID).filter(Gallery.Slug == slug).first() is not None:
        raise Conflict(f"A gallery with the slug '{slug}' already exists.", code="slug_taken")

    now = _utcnow()
    gallery = Gallery(
        UserID=owner_id,
        Title=title,
        Description=description,
        Slug=slug,
        HashedPassword=hash_password(password),
        ClientName=client_name,
        ClientEmail=client_email,
        EventType=(event_type or "other").strip() or "other",
        EventDate=event_date,
        IsActive=True,
        ExpiryDate=add_months(now, months),
        DownloadLimit=limit,
    )
    db.add(gallery)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"A gallery with the slug '{slug}' already exists.", code="slug_taken")
    db.refresh(gallery)

    storage.ensure_gallery(slug)
    audit.info(
        "gallery.created",
        extra={"gallery_id": gallery.GalleryID, "slug": slug, "owner_id": owner_id},
    )
    return gallery


_UPDATABLE = {
    "title": "Title",
    "description": "Description",
    "clientName": "ClientName",
    "clientEmail": "ClientEmail",
    "eventType": "EventType",
    "eventDate": "EventDate",
    "downloadLimit": "DownloadLimit",
    "isActive": "IsActive",
    "expiryDate": "ExpiryDate",
}


def update_gallery_settings(db: Session, gallery_id: int, changes: dict) -> Gallery:
    """Apply a partial update. The slug is fixed at creation and never changes."""
    gallery = get_gallery(db, gallery_id)
    applied = []
    for key, value in (changes or {}).items():
        column = _UPDATABLE.get(key)
        if column is None:
            continue
        if key in ("title", "clientName", "clientEmail"):
            value = _require(value, key)
        elif key == "downloadLimit":
            value = _check_download_limit(value)
        elif key == "eventType":
            value = (value or "other").strip() or "other"
        elif key == "isActive":
            value = bool(value)
        setattr(gallery, column, value)
        applied.append(key)
    gallery.UpdatedAt = _utcnow()
    db.commit()
    db.refresh(gallery)
    audit.info("gallery.updated", extra={"gallery_id": gallery_id, "fields": applied})
    return gallery


def reset_gallery_password(db: Session, gallery_id: int, new_password: str) -> None:
    _check_password(new_password)
    gallery = get_gallery(db, gallery_id)
    gallery.HashedPassword = hash_password(new_password)
    gallery.UpdatedAt = _utcnow()
    db.commit()
    audit.info("gallery.password_reset", extra={"gallery_id": gallery_id})


def delete_gallery(db: Session, storage: GalleryStorage, gallery_id: int) -> dict:
    """Remove the gallery and everything recorded against it, then its files.

    Rows go in a single commit. File cleanup runs afterwards; a failure there
    leaves orphan files but is reported as a warning rather than an error.
    """
    gallery = get_gallery(db, gallery_id)
    slug = gallery.Slug
    for model in (Download, Favorite, GalleryAccess):
        db.query(model).filter(model.GalleryID == gallery_id).delete(synchronize_session=False)
    db.query(GalleryImage).filter(GalleryImage.GalleryID == gallery_id).delete(
        synchronize_session=False
    )
    db.delete(gallery)
    db.commit()

    warning = None
    try:
        storage.remove_gallery(slug)
    except StorageError:
        warning = "Gallery deleted but its files could not be removed."
        logger.warning("gallery.delete.storage_cleanup_failed", extra={"slug": slug})
    audit.info("gallery.deleted", extra={"gallery_id": gallery_id, "slug": slug})
    return {"deleted": True, "warning": warning}


def _image_keys(image: GalleryImage) -> list:
    return [k for k in (image.FilePath, image.ThumbnailPath, image.WatermarkPath) if k]


def _remove_files(storage: GalleryStorage, keys: Iterable[str]) -> bool:
    ok = True
    for key in keys:
        try:
            storage.delete(key)
        except StorageError:
            ok = False
            logger.warning("gallery.image.file_cleanup_failed", extra={"key": key})
    return ok


def delete_image(db: Session, storage: GalleryStorage, gallery_id: int, image_id: int) -> None:
    image = (
        db.query(GalleryImage)
        .filter(GalleryImage.ImageID == image_id, GalleryImage.GalleryID == gallery_id)
        .first()
    )
    if image is None:
        raise NotFound("Image not found.")
    keys = _image_keys(image)
    db.query(Download).filter(Download.ImageID == image_id).delete(synchronize_session=False)
    db.query(Favorite).filter(Favorite.ImageID == image_id).delete(synchronize_session=False)
    db.delete(image)
    db.flush()
    rebuild_gallery_order(db, gallery_id, commit=False)
    db.commit()
    # Files go only once the rows are gone for good
    _remove_files(storage, keys)
    audit.info("gallery.image.deleted", extra={"gallery_id": gallery_id, "image_id": image_id})


def bulk_update_images(
    db: Session,
    storage: GalleryStorage,
    gallery_id: int,
    operation: str,
    image_ids: Iterable[int],
) -> dict:
    if operation not in BULK_OPERATIONS:
        raise ValidationError(f"Unknown operation: {operation}")
    ids = sorted({int(i) for i in image_ids or []})
    if not ids:
        raise ValidationError("imageIds must not be empty.")
    get_gallery(db, gallery_id)
    images = (
        db.query(GalleryImage)
        .filter(GalleryImage.GalleryID == gallery_id, GalleryImage.ImageID.in_(ids))
        .all()
    )

    keys = []
    if operation == "delete":
        for image in images:
            keys.extend(_image_keys(image))
        found = [img.ImageID for img in images]
        if found:
            db.query(Download).filter(Download.ImageID.in_(found)).delete(
                synchronize_session=False
            )
            db.query(Favorite).filter(Favorite.ImageID.in_(found)).delete(
                synchronize_session=False
            )
        for image in images:
            db.delete(image)
        db.flush()
        rebuild_gallery_order(db, gallery_id, commit=False)
    else:
        for image in images:
            if operation == "toggle_public":
                image.IsPublic = not bool(image.IsPublic)
            else:
                image.IsPublic = operation == "set_public"
            image.UpdatedAt = _utcnow()
    db.commit()
    _remove_files(storage, keys)
    audit.info(
        "gallery.images.bulk",
        extra={"gallery_id": gallery_id, "operation": operation, "count": len(images)},
    )
    return {"operation": operation, "affected": len(images)}


def _image_counts(db: Session) -> dict:
    rows = (
        db.query(GalleryImage.GalleryID, func.count(GalleryImage.ImageID))
        .group_by(GalleryImage.GalleryID)
        .all()
    )
    return {gid: int(n) for gid, n in rows}


def list_galleries(db: Session) -> list:
    galleries = (
        db.query(Gallery)
        .order_by(Gallery.CreatedAt.desc(), Gallery.GalleryID.desc())
        .all()
    )
    images = _image_counts(db)
    downloads = dict(
        db.query(Download.GalleryID, func.count(Download.DownloadID))
        .group_by(Download.GalleryID)
        .all()
    )
    return [
        gallery_to_dict(g, images.get(g.GalleryID, 0), int(downloads.get(g.GalleryID, 0)))
        for g in galleries
    ]


def get_gallery_detail(db: Session, gallery_id: int) -> dict:
    gallery = get_gallery(db, gallery_id)
    images = (
        db.query(GalleryImage)
        .filter(GalleryImage.GalleryID == gallery_id)
        .order_by(GalleryImage.Order.asc(), GalleryImage.ImageID.asc())
        .all()
    )
    access_count = (
        db.query(func.count(GalleryAccess.AccessID))
        .filter(GalleryAccess.GalleryID == gallery_id)
        .scalar()
    )
    favorite_count = (
        db.query(func.count(Favorite.FavoriteID)).filter(Favorite.GalleryID == gallery_id).scalar()
    )
    detail = gallery_to_dict(gallery, len(images), count_downloads(db, gallery_id))
    detail["accessCount"] = int(access_count or 0)
    detail["favoriteCount"] = int(favorite_count or 0)
    detail["images"] = [image_to_dict(img) for img in images]
    return detail


def list_public_galleries(db: Session) -> list:
    """Active, unexpired galleries with only what a visitor may see."""
    galleries = (
        db.query(Gallery)
        .filter(Gallery.IsActive.is_(True))
        .order_by(Gallery.CreatedAt.desc(), Gallery.GalleryID.desc())
        .all()
    )
    counts = _image_counts(db)
    return [
        {
            "title": g.Title,
            "slug": g.Slug,
            "eventType": g.EventType,
            "eventDate": g.EventDate.isoformat() if g.EventDate else None,
            "imageCount": counts.get(g.GalleryID, 0),
        }
        for g in galleries
        if not is_expired(g)
    ]


def get_client_gallery(
    db: Session, gallery: Gallery, client_ip: str, user_agent: Optional[str] = None
) -> dict:
    record_access(db, gallery, client_ip, user_agent)
    images = (
        db.query(GalleryImage)
        .filter(GalleryImage.GalleryID == gallery.GalleryID, GalleryImage.IsPublic.is_(True))
        .order_by(GalleryImage.Order.asc(), GalleryImage.ImageID.asc())
        .all()
    )
    favorites = favorite_image_ids(db, gallery.GalleryID, client_ip)
    used = count_downloads(db, gallery.GalleryID)
    limit = int(gallery.DownloadLimit or 0)
    base = f"/gallery/{gallery.Slug}"

    payload = gallery_descriptor(gallery)
    payload["description"] = gallery.Description
    payload["expiryDate"] = gallery.ExpiryDate.isoformat() if gallery.ExpiryDate else None
    payload["images"] = [
        {
            "id": img.ImageID,
            "originalName": img.OriginalName,
            "width": img.Width,
            "height": img.Height,
            "order": img.Order,
            "isFavorite": img.ImageID in favorites,
            "thumbnailUrl": f"{base}/thumbnails/{img.ImageID}",
            "downloadUrl": f"{base}/download/{img.ImageID}",
        }
        for img in images
    ]
    payload["downloadsUsed"] = used
    payload["downloadLimit"] = limit
    payload["downloadsRemaining"] = max(0, limit - used)
    return payload
