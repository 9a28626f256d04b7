"""MIME detection helpers.

Uses `magic` if available (provided by python-magic or python-magic-bin),
falls back to the declared content type when libmagic cannot be loaded.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def sniff_mime(data: bytes, fallback_content_type: Optional[str] = None) -> str:
    try:
        import magic  # type: ignore

        detected = magic.from_buffer(data[:4096], mime=True)
        if isinstance(detected, str) and detected:
            return detected
    except (ImportError, OSError) as exc:
        # libmagic missing on the host; trust the declared type
        logger.debug("mime.sniff_unavailable", extra={"error": str(exc)})
    return (fallback_content_type or "application/octet-stream").lower()


def check_upload_mime(
    data: bytes,
    declared: Optional[str],
    allowed: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp"),
) -> tuple[bool, str]:
    """Return (allowed, mime). Both the declared and the sniffed type must be allowed."""
    declared_mime = (declared or "").split(";")[0].strip().lower()
    if allowed and declared_mime not in allowed:
        return False, declared_mime or "application/octet-stream"
    mime = sniff_mime(data, declared_mime)
    if allowed and mime not in allowed:
        return False, mime
    return True, mime
