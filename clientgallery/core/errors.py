"""Domain errors raised by services and rendered by the app-level handler.

Each error carries the HTTP status it maps to, a stable machine-readable
``code`` and a message that is safe to show to the client.
"""

from typing import Optional


class GalleryError(Exception):
    status_code = 500
    code = "error"
    message = "Something went wrong."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class NotFound(GalleryError):
    status_code = 404
    code = "not_found"
    message = "Gallery not found or inactive."


class Expired(GalleryError):
    status_code = 403
    code = "gallery_expired"
    message = "This gallery is no longer available. Please contact your photographer."


class Unauthorized(GalleryError):
    status_code = 401
    code = "unauthorized"
    message = "Invalid password."


class Forbidden(GalleryError):
    status_code = 403
    code = "forbidden"
    message = "Administrator access required."


class QuotaExceeded(GalleryError):
    status_code = 429
    code = "download_limit_reached"
    message = (
        "The download limit for this gallery has been reached. "
        "Contact your photographer to request more downloads."
    )


class RateLimited(GalleryError):
    status_code = 429
    code = "too_many_attempts"
    message = "Too many attempts. Please try again later."


class ValidationError(GalleryError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request."


class Conflict(GalleryError):
    status_code = 409
    code = "conflict"
    message = "The request conflicts with existing data."


class StorageError(GalleryError):
    """Backing store failure. Internals are logged, never returned."""

    status_code = 500
    code = "storage_error"
    message = "Internal server error."


class FileMissing(StorageError):
    status_code = 404
    code = "file_not_found"
    message = "Image file not found."
