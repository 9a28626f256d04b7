import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clientgallery.core.dependencies import client_ip, request_id, user_agent
from clientgallery.core.errors import RateLimited, Unauthorized
from clientgallery.core.settings import settings
from clientgallery.models.user import User
from clientgallery.schemas import AdminLogin
from clientgallery.services import auth, rate_limit
from db import get_db

router = APIRouter(prefix="/admin", tags=["admin"])
audit = logging.getLogger("audit")


def user_to_dict(user: User) -> dict:
    return {
        "id": user.UserID,
        "email": user.Email,
        "fullName": user.FullName,
        "isAdmin": bool(user.IsAdmin),
        "lastLogin": user.LastLogin.isoformat() if user.LastLogin else None,
    }


@router.post("/login")
def login(body: AdminLogin, request: Request, db: Session = Depends(get_db)):
    email = (body.email or "").strip().lower()
    ip = client_ip(request)
    rl_key = f"login:{ip}:{email}"
    if rate_limit.is_limited(
        db,
        rl_key,
        settings.RATE_LIMIT_LOGIN_ATTEMPTS,
        settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS,
    ):
        audit.warning(
            "auth.login.rate_limited",
            extra={"email": email, "client": ip, "request_id": request_id(request)},
        )
        raise RateLimited("Too many login attempts. Please try again later.")

    user = auth.authenticate_admin(db, email, body.password)
    if not user:
        rate_limit.record_failure(db, rl_key, settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS)
        audit.warning(
            "auth.login.failed",
            extra={"email": email, "client": ip, "request_id": request_id(request)},
        )
        raise Unauthorized("Invalid email or password.")

    setattr(user, "LastLogin", datetime.now(timezone.utc).replace(tzinfo=None))
    db.commit()
    session = auth.create_session(
        db,
        user_id=getattr(user, "UserID"),
        ip_address=ip,
        user_agent=user_agent(request) or "",
    )
    session_id = str(session.SessionID)
    audit.info(
        "auth.login.success",
        extra={
            "user_id": getattr(user, "UserID", None),
            "session_id_tail": session_id[-8:],
            "client": ip,
            "request_id": request_id(request),
        },
    )
    response = JSONResponse({"success": True, "user": user_to_dict(user)})
    response.set_cookie(
        key=auth.SESSION_COOKIE,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=bool(settings.COOKIE_SECURE),
        max_age=settings.ADMIN_SESSION_MINUTES * 60,
        path="/",
    )
    return response


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    user_id = auth.get_user_id_from_request(request, db)
    sid = request.cookies.get(auth.SESSION_COOKIE)
    if sid:
        auth.deactivate_session(db, sid)
    audit.info(
        "auth.logout",
        extra={
            "user_id": user_id,
            "client": client_ip(request),
            "request_id": request_id(request),
        },
    )
    response = JSONResponse({"success": True})
    response.delete_cookie(key=auth.SESSION_COOKIE, path="/")
    return response


@router.get("/me")
def me(user: User = Depends(auth.require_admin)):
    return {"success": True, "user": user_to_dict(user)}
