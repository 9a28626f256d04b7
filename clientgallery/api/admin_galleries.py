"""Gallery administration. Every route here sits behind the admin gate."""

from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from clientgallery.api.client_gallery import content_disposition
from clientgallery.core.dependencies import get_storage, request_id
from clientgallery.core.settings import settings
from clientgallery.models.user import User
from clientgallery.schemas import (
    BulkOperationRequest,
    GalleryCreate,
    GallerySettingsUpdate,
    PasswordReset,
    ReorderRequest,
)
from clientgallery.services import galleries as gallery_service
from clientgallery.services.auth import require_admin
from clientgallery.services.downloads import admin_download_image
from clientgallery.services.ingestion import IncomingFile, image_to_dict, ingest_images
from clientgallery.services.ordering import rebuild_gallery_order, reorder_images
from clientgallery.services.storage import GalleryStorage
from db import get_db

router = APIRouter(
    prefix="/admin/galleries",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("")
def list_galleries(db: Session = Depends(get_db)):
    return {"success": True, "galleries": gallery_service.list_galleries(db)}


@router.post("", status_code=201)
def create_gallery(
    body: GalleryCreate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    gallery = gallery_service.create_gallery(
        db,
        storage,
        owner_id=user.UserID,
        title=body.title,
        client_name=body.clientName,
        client_email=body.clientEmail,
        password=body.password,
        description=body.description,
        event_type=body.eventType,
        event_date=body.eventDate,
        download_limit=body.downloadLimit,
        expiry_months=body.expiryMonths,
    )
    return {"success": True, "gallery": gallery_service.gallery_to_dict(gallery)}


@router.get("/{gallery_id}")
def gallery_detail(gallery_id: int, db: Session = Depends(get_db)):
    return {"success": True, "gallery": gallery_service.get_gallery_detail(db, gallery_id)}


@router.patch("/{gallery_id}")
def update_gallery(gallery_id: int, body: GallerySettingsUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)
    gallery = gallery_service.update_gallery_settings(db, gallery_id, changes)
    return {"success": True, "gallery": gallery_service.gallery_to_dict(gallery)}


@router.delete("/{gallery_id}")
def delete_gallery(
    gallery_id: int,
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    result = gallery_service.delete_gallery(db, storage, gallery_id)
    return {"success": True, **result}


@router.post("/{gallery_id}/password")
def reset_password(gallery_id: int, body: PasswordReset, db: Session = Depends(get_db)):
    gallery_service.reset_gallery_password(db, gallery_id, body.password)
    return {"success": True}


def _read_upload(upload: UploadFile) -> IncomingFile:
    # One byte past the limit is enough to reject an oversized file
    limit = int(settings.MAX_UPLOAD_BYTES)
    data = upload.file.read(limit + 1) if limit else upload.file.read()
    return IncomingFile(
        filename=upload.filename or "",
        content_type=upload.content_type,
        data=data,
    )


@router.post("/{gallery_id}/images")
def upload_images(
    gallery_id: int,
    request: Request,
    images: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    gallery = gallery_service.get_gallery(db, gallery_id)
    files = (_read_upload(upload) for upload in images)
    result = ingest_images(db, storage, gallery, files, request_id=request_id(request))
    created = len(result.created)
    body = {
        "success": created > 0,
        "message": f"{created} of {created + len(result.failures)} images uploaded.",
        "created": [image_to_dict(img) for img in result.created],
        "failures": [f.to_dict() for f in result.failures],
    }
    if not created:
        body["error"] = "upload_failed"
    return JSONResponse(body, status_code=200 if created else 400)


@router.post("/{gallery_id}/images/reorder")
def reorder(gallery_id: int, body: ReorderRequest, db: Session = Depends(get_db)):
    gallery_service.get_gallery(db, gallery_id)
    updated = reorder_images(db, gallery_id, [entry.model_dump() for entry in body.imageOrders])
    return {"success": True, "updated": updated}


@router.post("/{gallery_id}/images/bulk")
def bulk_images(
    gallery_id: int,
    body: BulkOperationRequest,
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    result = gallery_service.bulk_update_images(
        db, storage, gallery_id, body.operation, body.imageIds
    )
    return {"success": True, **result}


@router.post("/{gallery_id}/rebuild-order")
def rebuild_order(gallery_id: int, db: Session = Depends(get_db)):
    gallery_service.get_gallery(db, gallery_id)
    count = rebuild_gallery_order(db, gallery_id)
    return {"success": True, "count": count}


@router.delete("/{gallery_id}/images/{image_id}")
def delete_image(
    gallery_id: int,
    image_id: int,
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    gallery_service.delete_image(db, storage, gallery_id, image_id)
    return {"success": True}


@router.get("/{gallery_id}/images/{image_id}/download")
def preview_download(
    gallery_id: int,
    image_id: int,
    db: Session = Depends(get_db),
    storage: GalleryStorage = Depends(get_storage),
):
    payload = admin_download_image(db, storage, gallery_id, image_id)
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": content_disposition(payload.filename)},
    )
