"""Misc public endpoints (health, public gallery listing)."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clientgallery.core.settings import settings
from clientgallery.services.galleries import list_public_galleries
from db import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/galleries")
def public_galleries(db: Session = Depends(get_db)):
    return {"success": True, "galleries": list_public_galleries(db)}


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    # Check required settings presence (don't leak values)
    missing = []
    if settings.SECRET_KEY == "CHANGE_THIS_TO_A_SECRET_KEY" or not settings.SECRET_KEY:
        missing.append("SECRET_KEY")
    if settings.STORAGE_BACKEND == "s3" and not settings.S3_GALLERIES_BUCKET:
        missing.append("S3_GALLERIES_BUCKET")

    db_ok = False
    db_error = None
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("health.db_unreachable", exc_info=True)
        db_error = e.__class__.__name__

    status = "ok" if db_ok and not missing else ("degraded" if db_ok else "error")
    payload = {
        "status": status,
        "time": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "config": {
            "base_url_set": bool(settings.BASE_URL),
            "storage_backend": settings.STORAGE_BACKEND,
            "sentry_enabled": bool(settings.SENTRY_DSN),
        },
        "missing": missing,
        "db": {"ok": db_ok, "error": db_error},
    }
    # Status is reported in the payload; load balancers use /health.txt
    return JSONResponse(content=payload, status_code=200)


@router.get("/health.txt")
def health_text():
    return Response(content="OK", media_type="text/plain")
