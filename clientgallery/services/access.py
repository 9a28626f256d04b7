"""Gallery access: password verification and per-request re-checks."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clientgallery.core.dependencies import client_ip
from clientgallery.core.errors import Expired, NotFound, RateLimited, Unauthorized, ValidationError
from clientgallery.core.settings import settings
from clientgallery.models.gallery import Gallery, GalleryAccess
from clientgallery.services import rate_limit
from clientgallery.services.access_token import read_access_token, token_from_request
from clientgallery.services.auth import verify_password
from db import get_db

audit = logging.getLogger("audit")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_expired(gallery: Gallery, now: Optional[datetime] = None) -> bool:
    expiry = getattr(gallery, "ExpiryDate", None)
    return expiry is not None and (now or _utcnow()) > expiry


def resolve_active_gallery(db: Session, slug: str) -> Gallery:
    """Return the active, unexpired gallery for `slug` or raise NotFound/Expired."""
    gallery = (
        db.query(Gallery)
        .filter(Gallery.Slug == (slug or "").strip(), Gallery.IsActive.is_(True))
        .first()
    )
    if gallery is None:
        raise NotFound()
    if is_expired(gallery):
        raise Expired()
    return gallery


def gallery_descriptor(gallery: Gallery) -> dict:
    """Minimal public view of a gallery; never includes the password hash."""
    event_date = getattr(gallery, "EventDate", None)
    return {
        "id": gallery.GalleryID,
        "title": gallery.Title,
        "slug": gallery.Slug,
        "clientName": gallery.ClientName,
        "eventType": gallery.EventType,
        "eventDate": event_date.isoformat() if event_date else None,
        "downloadLimit": gallery.DownloadLimit,
    }


def record_access(
    db: Session, gallery: Gallery, ip: str, ua: Optional[str] = None
) -> GalleryAccess:
    row = GalleryAccess(GalleryID=gallery.GalleryID, ClientIP=ip or "unknown", UserAgent=ua)
    db.add(row)
    db.commit()
    return row


def verify_gallery_access(
    db: Session,
    slug: str,
    password: str,
    ip: str,
    ua: Optional[str] = None,
    request_id: Optional[str] = None,
) -> tuple[Gallery, dict]:
    """Check a slug/password pair and log the visit.

    Raises ValidationError for missing input, RateLimited after too many bad
    passwords from this client, NotFound for unknown or inactive galleries,
    Expired past the expiry date and Unauthorized for a wrong password.
    Exactly one GalleryAccess row is written per successful call; failed
    attempts write none.
    """
    slug = (slug or "").strip()
    if not slug or not password:
        raise ValidationError("Gallery ID and password are required.")

    rl_key = f"verify:{ip}:{slug}"
    if rate_limit.is_limited(
        db,
        rl_key,
        settings.VERIFY_RATE_LIMIT_ATTEMPTS,
        settings.VERIFY_RATE_LIMIT_WINDOW_SECONDS,
    ):
        audit.warning(
            "gallery.verify.rate_limited",
            extra={"slug": slug, "client": ip, "request_id": request_id},
        )
        raise RateLimited()

    try:
        gallery = resolve_active_gallery(db, slug)
    except NotFound:
        audit.warning(
            "gallery.verify.not_found",
            extra={"slug": slug, "client": ip, "request_id": request_id},
        )
        raise
    except Expired:
        audit.info(
            "gallery.verify.expired",
            extra={"slug": slug, "client": ip, "request_id": request_id},
        )
        raise

    if not verify_password(password, gallery.HashedPassword):
        rate_limit.record_failure(db, rl_key, settings.VERIFY_RATE_LIMIT_WINDOW_SECONDS)
        audit.warning(
            "gallery.verify.failed_password",
            extra={
                "gallery_id": gallery.GalleryID,
                "slug": slug,
                "client": ip,
                "request_id": request_id,
            },
        )
        raise Unauthorized()

    record_access(db, gallery, ip, ua)
    audit.info(
        "gallery.verify.success",
        extra={
            "gallery_id": gallery.GalleryID,
            "slug": slug,
            "client": ip,
            "request_id": request_id,
        },
    )
    return gallery, gallery_descriptor(gallery)


def require_gallery_access(slug: str, request: Request, db: Session = Depends(get_db)) -> Gallery:
    """Dependency for client endpoints under /gallery/{slug}.

    The signed token only says the password was entered within the access TTL;
    the gallery's current state is always re-read from the database.
    """
    claims = read_access_token(token_from_request(request, slug) or "")
    if claims is None or claims.slug != slug:
        audit.info(
            "gallery.access.token_rejected",
            extra={
                "slug": slug,
                "client": client_ip(request),
                "request_id": getattr(request.state, "request_id", None),
            },
        )
        raise Unauthorized(
            "Your gallery session has expired. Please enter the gallery password again.",
            code="access_required",
        )
    gallery = resolve_active_gallery(db, slug)
    if gallery.GalleryID != claims.gallery_id:
        # Slug reused by a different gallery since the token was issued
        raise Unauthorized(
            "Your gallery session is no longer valid. Please enter the gallery password again.",
            code="access_required",
        )
    request.state.gallery_id = gallery.GalleryID
    return gallery
