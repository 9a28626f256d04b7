"""Client-facing gallery endpoints: password entry, viewing, favorites, downloads."""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from clientgallery.core.dependencies import client_ip, get_storage, request_id, user_agent
from clientgallery.core.errors import NotFound
from clientgallery.models.gallery import Gallery, GalleryImage
from clientgallery.schemas import FavoriteRequest, VerifyRequest
from clientgallery.services.access import require_gallery_access, verify_gallery_access
from clientgallery.services.access_token import (
    clear_access_cookie,
    issue_access_token,
    set_access_cookie,
)
from clientgallery.services.downloads import download_image, read_thumbnail
from clientgallery.services.favorites import toggle_favorite
from clientgallery.services.galleries import get_client_gallery
from clientgallery.services.storage import GalleryStorage
from db import get_db

router = APIRouter(prefix="/gallery", tags=["gallery"])
audit = logging.getLogger("audit")


def content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode() or "download"
    ascii_name = ascii_name.replace('"', "")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@router.post("/verify")
def verify(body: VerifyRequest, request: Request, db: Session = Depends(get_db)):
    gallery, descriptor = verify_gallery_access(
        db,
        body.gallerySlug,
        body.password,
        client_ip(request),
        user_agent(request),
        request_id(request),
    )
    token = issue_access_token(gallery)
    response = JSONResponse(
        {"success": True, "gallery": descriptor, "accessToken": token}
    )
    set_access_cookie(response, gallery.Slug, token)
    return response


@router.get("/{slug}")
def view_gallery(
    slug: str,
    request: Request,
    gallery: Gallery = Depends(require_gallery_access),
    db: Session = Depends(get_db),
):
    payload = get_client_gallery(db, gallery, client_ip(request), user_agent(request))
    return {"success": True, "gallery": payload}


@router.post("/{slug}/favorite")
def favorite(
    slug: str,
    body: FavoriteRequest,
    request: Request,
    gallery: Gallery = Depends(require_gallery_access),
    db: Session = Depends(get_db),
):
    result = toggle_favorite(db, gallery, body.imageId, client_ip(request))
    return {"success": True, **result}


@router.get("/{slug}/download/{image_id}")
def download(
    slug: str,
    image_id: int,
    request: Request,
    gallery: Gallery = Depends(require_gallery_access),
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    payload = download_image(
        db, storage, gallery, image_id, client_ip(request), user_agent(request)
    )
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={
            "Content-Disposition": content_disposition(payload.filename),
            "X-Downloads-Used": str(payload.downloads_used),
            "X-Downloads-Remaining": str(payload.downloads_remaining),
            "Cache-Control": "no-store",
        },
    )


@router.get("/{slug}/thumbnails/{image_id}")
def thumbnail(
    slug: str,
    image_id: int,
    gallery: Gallery = Depends(require_gallery_access),
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    image = (
        db.query(GalleryImage)
        .filter(
            GalleryImage.ImageID == image_id,
            GalleryImage.GalleryID == gallery.GalleryID,
            GalleryImage.IsPublic.is_(True),
        )
        .first()
    )
    if image is None:
        raise NotFound("Image not found.")
    payload = read_thumbnail(storage, image)
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Cache-Control": "private, max-age=3600"},
    )


@router.post("/{slug}/leave")
def leave(slug: str, request: Request):
    response = JSONResponse({"success": True})
    clear_access_cookie(response, slug)
    audit.info(
        "gallery.leave",
        extra={"slug": slug, "client": client_ip(request), "request_id": request_id(request)},
    )
    return response
