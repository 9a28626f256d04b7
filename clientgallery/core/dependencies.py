"""Dependencies and request helpers for FastAPI routes."""
from typing import Optional

from fastapi import Request

from clientgallery.services.storage import GalleryStorage


def get_storage(request: Request) -> GalleryStorage:
    """Provide the configured gallery storage backend to routes."""
    return request.app.state.storage


def client_ip(request: Request) -> str:
    """Socket peer address.

    Forwarded headers are never read here. Behind a reverse proxy, set
    FORWARDED_ALLOW_IPS so the proxy-headers middleware rewrites request.client.
    """
    if request.client and request.client.host:
        return request.client.host[:45]
    return "unknown"


def user_agent(request: Request) -> Optional[str]:
    ua = request.headers.get("user-agent")
    return ua[:255] if ua else None


def request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)
