import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.requests import Request

from clientgallery.core.errors import Conflict, Forbidden, Unauthorized
from clientgallery.core.settings import settings
from clientgallery.models.user import User, UserSession
from db import get_db

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_id"

# Gallery and admin passwords share one bcrypt policy with a fixed work factor.
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS,
)


def _utcnow() -> datetime:
    # Aware UTC for arithmetic, stored naive to match the schema
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Password hashing


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time comparison through passlib; malformed hashes never match."""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("auth.hash.unrecognized")
        return False


# Admin accounts


def authenticate_admin(db: Session, email: str, password: str) -> Optional[User]:
    user = (
        db.query(User)
        .filter(User.Email == (email or "").strip().lower(), User.IsActive)
        .first()
    )
    if user and verify_password(password, getattr(user, "HashedPassword", "")):
        return user
    return None


def create_user(
    db: Session, email: str, password: str, full_name: str = "", is_admin: bool = False
) -> User:
    user = User(
        Email=email.strip().lower(),
        FullName=full_name,
        HashedPassword=hash_password(password),
        IsActive=True,
        IsAdmin=is_admin,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A user with this email already exists.")
    db.refresh(user)
    return user


# Session management


def create_session(
    db: Session,
    user_id: int,
    expires_in_minutes: Optional[int] = None,
    ip_address: str = "",
    user_agent: str = "",
) -> UserSession:
    minutes = expires_in_minutes or settings.ADMIN_SESSION_MINUTES
    now = _utcnow()
    session = UserSession(
        SessionID=uuid.uuid4(),
        UserID=user_id,
        CreatedAt=now,
        ExpiresAt=now + timedelta(minutes=minutes),
        IsActive=True,
        LastSeen=now,
        IPAddress=ip_address or None,
        UserAgent=(user_agent or "")[:255] or None,
    )
    db.add(session)
    db.commit()
    return session


def _parse_session_id(session_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(session_id))
    except (ValueError, TypeError):
        return None


def get_session(db: Session, session_id: str) -> Optional[UserSession]:
    sid = _parse_session_id(session_id)
    if sid is None:
        return None
    session = (
        db.query(UserSession)
        .filter(UserSession.SessionID == sid, UserSession.IsActive)
        .first()
    )
    if session is None:
        return None
    expires_at = getattr(session, "ExpiresAt", None)
    if isinstance(expires_at, datetime) and expires_at > _utcnow():
        setattr(session, "LastSeen", _utcnow())
        db.commit()
        return session
    return None


def deactivate_session(db: Session, session_id: str) -> None:
    sid = _parse_session_id(session_id)
    if sid is None:
        return
    session = db.query(UserSession).filter(UserSession.SessionID == sid).first()
    if session:
        setattr(session, "IsActive", False)
        db.commit()


def get_user_id_from_request(request: Request, db: Session) -> Optional[int]:
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    session_obj = get_session(db=db, session_id=session_id)
    if not session_obj:
        return None
    uid: Any = getattr(session_obj, "UserID", None)
    return int(uid) if uid is not None else None


# FastAPI dependencies for auth


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Return the current authenticated User or None if not logged in/invalid."""
    uid = get_user_id_from_request(request, db)
    if uid is None:
        return None
    return db.query(User).filter(User.UserID == uid, User.IsActive).first()


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = get_current_user(request, db)
    if not user:
        raise Unauthorized("Please sign in.", code="login_required")
    return user


def require_admin(request: Request, user: User = Depends(require_user)) -> User:
    """Router-level gate for every admin endpoint."""
    if not bool(getattr(user, "IsAdmin", False)):
        logging.getLogger("audit").warning(
            "admin.forbidden",
            extra={
                "user_id": getattr(user, "UserID", None),
                "path": request.url.path,
                "request_id": getattr(request.state, "request_id", None),
            },
        )
        raise Forbidden()
    request.state.user_id = getattr(user, "UserID", None)
    return user
