import logging
import time
import traceback
import uuid
from typing import Optional

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.starlette import StarletteIntegration
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from clientgallery.api import admin_auth, admin_galleries, client_gallery, misc
from clientgallery.core.errors import GalleryError
from clientgallery.core.logging_utils import configure_logging
from clientgallery.core.settings import settings
from clientgallery.models import AppErrorLog
from clientgallery.services.storage import build_storage
from db import get_db

load_dotenv()


app = FastAPI(title="Client Gallery")

# Configure logging (console + rotating file; JSON by default)
configure_logging(settings)
logger = logging.getLogger("app")
audit = logging.getLogger("audit")

# Gallery files live on local disk unless STORAGE_BACKEND=s3
app.state.storage = build_storage(settings)

# Initialize Sentry if DSN provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[StarletteIntegration()],
        traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0.0),
        send_default_pii=False,
    )

app.include_router(client_gallery.router)
app.include_router(admin_auth.router)
app.include_router(admin_galleries.router)
app.include_router(misc.router)


# Request logging middleware with request id
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start = time.perf_counter()
    duration_ms: Optional[int] = None
    # Stash request_id for downstream handlers
    request.state.request_id = request_id

    extra_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
    logger.info("request.start", extra=extra_ctx)
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception("request.error", extra={**extra_ctx, "duration_ms": duration_ms})
        # Re-raise to be handled by 500 handler
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request.end",
        extra={
            **extra_ctx,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "user_id": getattr(request.state, "user_id", None),
        },
    )
    return response


def install_proxy_headers(target: FastAPI, allow_ips: str) -> bool:
    """Trust X-Forwarded-For only from the listed proxy addresses."""
    hosts = [h.strip() for h in (allow_ips or "").split(",") if h.strip()]
    if not hosts:
        return False
    # Added last so it wraps the logging middleware and rewrites request.client first
    target.add_middleware(ProxyHeadersMiddleware, trusted_hosts=hosts)
    return True


install_proxy_headers(app, settings.FORWARDED_ALLOW_IPS)


def _log_error_row(request: Request, status: int, message: str, stack: Optional[str]) -> None:
    """Best-effort AppErrorLog write; never masks the original error."""
    db_gen = get_db()
    db = next(db_gen)
    try:
        # The failed request may have left the session mid-transaction
        db.rollback()
        request_id = getattr(request.state, "request_id", None)
        db.add(
            AppErrorLog(
                RequestID=str(request_id) if request_id else None,
                Path=str(request.url.path),
                Method=request.method,
                StatusCode=int(status),
                UserID=getattr(request.state, "user_id", None),
                ClientIP=request.client.host if request.client else None,
                UserAgent=request.headers.get("user-agent"),
                Referer=request.headers.get("referer"),
                Message=message,
                StackTrace=stack,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("error_log.write_failed", exc_info=True)
    finally:
        db_gen.close()


def _json_error(request: Request, status: int, body: dict) -> JSONResponse:
    resp = JSONResponse(body, status_code=status)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        resp.headers["X-Request-ID"] = str(request_id)
    return resp


@app.exception_handler(GalleryError)
async def gallery_error_handler(request: Request, exc: GalleryError):
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error(
            "request.failed",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"request_id": request_id, "path": request.url.path, "error": exc.code},
        )
        _log_error_row(
            request,
            exc.status_code,
            f"{exc.__class__.__name__}: {exc}",
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
    else:
        audit.info(
            "request.rejected",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "status_code": exc.status_code,
                "error": exc.code,
                "gallery_id": getattr(request.state, "gallery_id", None),
            },
        )
    return _json_error(request, exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted(
        {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
    )
    audit.info(
        "request.invalid",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "fields": fields,
        },
    )
    message = "Invalid request."
    if fields:
        message = f"Invalid value for: {', '.join(fields)}."
    return _json_error(
        request, 400, {"success": False, "error": "validation_error", "message": message}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    status = getattr(exc, "status_code", 500) or 500
    code = "not_found" if status == 404 else "http_error"
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed."
    resp = _json_error(request, status, {"success": False, "error": code, "message": detail})
    if getattr(exc, "headers", None):
        for key, value in exc.headers.items():
            resp.headers[key] = value
    return resp


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    _log_error_row(
        request,
        500,
        str(exc),
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    return _json_error(
        request,
        500,
        {"success": False, "error": "internal_error", "message": "Internal server error."},
    )
