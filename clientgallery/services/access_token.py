"""Signed client access tokens for galleries.

A token proves that this browser entered the gallery password recently. It
is signed and timestamped with the app secret, but it only says *who was let
in*; callers still re-check the gallery itself on every request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.requests import Request

from clientgallery.core.settings import settings

TOKEN_SALT = "gallery-access"
COOKIE_PREFIX = "gallery_access_"
HEADER_NAME = "X-Gallery-Token"

serializer = URLSafeTimedSerializer(settings.SECRET_KEY, salt=TOKEN_SALT)


@dataclass(frozen=True)
class AccessClaims:
    gallery_id: int
    slug: str
    client_name: str
    title: str
    access_time_ms: int


def cookie_name(slug: str) -> str:
    return f"{COOKIE_PREFIX}{slug}"


def issue_access_token(gallery) -> str:
    payload = {
        "gid": int(gallery.GalleryID),
        "slug": gallery.Slug,
        "clientName": gallery.ClientName,
        "title": gallery.Title,
        "accessTime": int(time.time() * 1000),
    }
    return str(serializer.dumps(payload))


def read_access_token(token: str, max_age: Optional[int] = None) -> Optional[AccessClaims]:
    """Return the claims of a valid, unexpired token, else None."""
    if not token:
        return None
    age = settings.GALLERY_ACCESS_TTL_SECONDS if max_age is None else max_age
    try:
        data = serializer.loads(token, max_age=age)
    except SignatureExpired:
        return None
    except BadSignature:
        return None
    try:
        return AccessClaims(
            gallery_id=int(data["gid"]),
            slug=str(data["slug"]),
            client_name=str(data.get("clientName") or ""),
            title=str(data.get("title") or ""),
            access_time_ms=int(data.get("accessTime") or 0),
        )
    except (KeyError, TypeError, ValueError):
        return None


def token_from_request(request: Request, slug: str) -> Optional[str]:
    """Cookie first, then `Authorization: Bearer` or the X-Gallery-Token header."""
    token = request.cookies.get(cookie_name(slug))
    if token:
        return token
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.headers.get(HEADER_NAME) or None


def set_access_cookie(response, slug: str, token: str) -> None:
    response.set_cookie(
        key=cookie_name(slug),
        value=token,
        httponly=True,
        samesite="lax",
        secure=bool(settings.COOKIE_SECURE),
        max_age=int(settings.GALLERY_ACCESS_TTL_SECONDS),
        path="/",
    )


def clear_access_cookie(response, slug: str) -> None:
    response.delete_cookie(key=cookie_name(slug), path="/")
