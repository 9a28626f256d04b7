"""
Request bodies for the JSON endpoints.
Field names follow the camelCase used by the gallery frontend.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Columns store naive UTC; convert offsets before dropping them
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class VerifyRequest(BaseModel):
    """
    Body of POST /gallery/verify.
    Both fields default to empty so a missing value is reported as a
    validation_error (400) by the access service rather than a 422.
    """
    gallerySlug: str = ""
    password: str = ""


class FavoriteRequest(BaseModel):
    imageId: int


class AdminLogin(BaseModel):
    email: str
    password: str


class GalleryCreate(BaseModel):
    """Body of POST /admin/galleries."""
    title: str = ""
    clientName: str = ""
    clientEmail: str = ""
    password: str = ""
    description: Optional[str] = None
    eventType: Optional[str] = None
    eventDate: Optional[datetime] = None
    downloadLimit: Optional[int] = None
    expiryMonths: Optional[int] = None

    @field_validator("eventDate")
    @classmethod
    def event_date_utc(cls, v):
        return _naive_utc(v)


class GallerySettingsUpdate(BaseModel):
    """
    Body of PATCH /admin/galleries/{id}.
    Only the fields present in the request are applied; the slug cannot be changed.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    clientName: Optional[str] = None
    clientEmail: Optional[str] = None
    eventType: Optional[str] = None
    eventDate: Optional[datetime] = None
    downloadLimit: Optional[int] = None
    isActive: Optional[bool] = None
    expiryDate: Optional[datetime] = None

    @field_validator("eventDate", "expiryDate")
    @classmethod
    def dates_utc(cls, v):
        return _naive_utc(v)


class PasswordReset(BaseModel):
    password: str = ""


class ImageOrder(BaseModel):
    imageId: int
    order: int


class ReorderRequest(BaseModel):
    imageOrders: List[ImageOrder]


class BulkOperationRequest(BaseModel):
    """
    Body of POST /admin/galleries/{id}/images/bulk.
    operation is one of delete, toggle_public, set_public, set_private.
    """
    operation: str
    imageIds: List[int]

    @field_validator("operation")
    @classmethod
    def normalise_operation(cls, v):
        return (v or "").strip().lower()
