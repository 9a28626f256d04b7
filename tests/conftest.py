import io
import os
from datetime import datetime, timedelta, timezone

# Must be set before db/settings are imported anywhere
os.environ.setdefault("TEST_SQLITE", "1")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.orm import Session as _Session  # noqa: E402

import clientgallery.models  # noqa: E402,F401
from clientgallery.models import Gallery, GalleryImage, User  # noqa: E402
from clientgallery.models.user import Base  # noqa: E402
from clientgallery.services.auth import create_session, hash_password  # noqa: E402
from clientgallery.services.storage import (  # noqa: E402
    LocalGalleryStorage,
    full_key,
    thumbnail_key,
)
from db import engine  # noqa: E402

# In-memory SQLite shares one connection (StaticPool); create the schema once.
Base.metadata.create_all(bind=engine)


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_image_bytes(width=64, height=48, fmt="JPEG", color=(200, 30, 30)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    buf = io.BytesIO()
    Image.new(mode, (width, height), fill).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def db_session():
    """Connection-bound session; every commit inside a test is a SAVEPOINT.

    The outer transaction is rolled back at teardown so tests stay isolated,
    while service code is free to commit and roll back as it does in production.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = _Session(bind=connection, join_transaction_mode="create_savepoint")

    import db as dbmod

    dbmod._TEST_SESSION = session
    try:
        yield session
    finally:
        dbmod._TEST_SESSION = None
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture
def storage(tmp_path):
    return LocalGalleryStorage(str(tmp_path / "galleries"))


@pytest.fixture
def client(db_session, storage):
    # Import the app here so the environment above is in place first
    from main import app

    previous = app.state.storage
    app.state.storage = storage
    with TestClient(app) as c:
        yield c
    app.state.storage = previous


@pytest.fixture
def owner(db_session):
    user = User(
        Email="owner@example.test",
        FullName="Studio Owner",
        HashedPassword=hash_password("owner-pass"),
        IsActive=True,
        IsAdmin=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_client(client, db_session, owner):
    session = create_session(db_session, user_id=owner.UserID)
    client.cookies.set("session_id", str(session.SessionID))
    return client


@pytest.fixture
def make_gallery(db_session, owner):
    def _make(
        slug="wedding-smith-2024",
        password="correct-pw",
        download_limit=50,
        expires_in_days=30,
        is_active=True,
        title="Smith Wedding",
    ):
        gallery = Gallery(
            UserID=owner.UserID,
            Title=title,
            Slug=slug,
            HashedPassword=hash_password(password),
            ClientName="John Smith",
            ClientEmail="john@example.test",
            EventType="wedding",
            IsActive=is_active,
            ExpiryDate=_utcnow() + timedelta(days=expires_in_days),
            DownloadLimit=download_limit,
        )
        db_session.add(gallery)
        db_session.commit()
        return gallery

    return _make


@pytest.fixture
def add_image(db_session, storage):
    """Store a small image for a gallery directly, bypassing the upload pipeline."""
    counter = {"n": 0}

    def _add(gallery, order=None, is_public=True, original_name=None):
        n = counter["n"]
        counter["n"] += 1
        file_name = f"img{n:04d}.jpg"
        data = make_image_bytes()
        storage.save(full_key(gallery.Slug, file_name), data, content_type="image/jpeg")
        storage.save(thumbnail_key(gallery.Slug, file_name), data, content_type="image/jpeg")
        image = GalleryImage(
            GalleryID=gallery.GalleryID,
            FileName=file_name,
            OriginalName=original_name or f"DSC_{n:04d}.jpg",
            FilePath=full_key(gallery.Slug, file_name),
            ThumbnailPath=thumbnail_key(gallery.Slug, file_name),
            FileSize=len(data),
            Width=64,
            Height=48,
            Order=n if order is None else order,
            IsPublic=is_public,
        )
        db_session.add(image)
        db_session.commit()
        return image

    return _add


@pytest.fixture
def verified_client(client):
    """Return a helper that verifies a gallery password through the API."""

    def _verify(slug="wedding-smith-2024", password="correct-pw"):
        r = client.post("/gallery/verify", json={"gallerySlug": slug, "password": password})
        assert r.status_code == 200, r.text
        return r.json()

    return _verify


@pytest.fixture
def image_bytes():
    return make_image_bytes
