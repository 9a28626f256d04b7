from datetime import datetime, timedelta, timezone

import pytest

from clientgallery.core.errors import RateLimited, Unauthorized
from clientgallery.models import GalleryAccess
from clientgallery.services.access import verify_gallery_access
from clientgallery.services.access_token import cookie_name, read_access_token


def _access_rows(db_session, gallery):
    return (
        db_session.query(GalleryAccess)
        .filter(GalleryAccess.GalleryID == gallery.GalleryID)
        .count()
    )


def test_verify_success_returns_descriptor_and_token(client, db_session, make_gallery):
    gallery = make_gallery()
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["gallery"]["slug"] == "wedding-smith-2024"
    assert body["gallery"]["clientName"] == "John Smith"
    assert "HashedPassword" not in body["gallery"]
    assert "password" not in str(body["gallery"]).lower()

    claims = read_access_token(body["accessToken"])
    assert claims is not None
    assert claims.gallery_id == gallery.GalleryID
    assert claims.slug == "wedding-smith-2024"
    assert cookie_name("wedding-smith-2024") in r.headers.get("set-cookie", "")


def test_verify_success_writes_exactly_one_access_row(client, db_session, make_gallery):
    gallery = make_gallery()
    assert _access_rows(db_session, gallery) == 0
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 200
    assert _access_rows(db_session, gallery) == 1


def test_verify_wrong_password_writes_no_access_row(client, db_session, make_gallery):
    gallery = make_gallery()
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "nope"}
    )
    assert r.status_code == 401
    body = r.json()
    assert body == {"success": False, "error": "unauthorized", "message": "Invalid password."}
    assert _access_rows(db_session, gallery) == 0


def test_verify_unknown_gallery_is_not_found(client, db_session, make_gallery):
    make_gallery()
    r = client.post("/gallery/verify", json={"gallerySlug": "no-such-gallery", "password": "x"})
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_verify_inactive_gallery_is_not_found(client, db_session, make_gallery):
    make_gallery(is_active=False)
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 404


def test_verify_expired_gallery_rejected_even_with_correct_password(
    client, db_session, make_gallery
):
    gallery = make_gallery(expires_in_days=-1)
    assert gallery.ExpiryDate < datetime.now(timezone.utc).replace(tzinfo=None)
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 403
    assert r.json()["error"] == "gallery_expired"
    assert _access_rows(db_session, gallery) == 0


def test_verify_missing_fields_is_validation_error(client, db_session):
    r = client.post("/gallery/verify", json={"gallerySlug": "", "password": ""})
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"

    r = client.post("/gallery/verify", json={})
    assert r.status_code == 400


def test_verify_is_rate_limited_after_repeated_failures(
    client, db_session, make_gallery, monkeypatch
):
    from clientgallery.core.settings import settings

    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT_ATTEMPTS", 3)
    make_gallery()
    for _ in range(3):
        r = client.post(
            "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "bad"}
        )
        assert r.status_code == 401
    # Even the right password is refused once the window is exhausted
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 429
    assert r.json()["error"] == "too_many_attempts"


def test_forwarded_header_does_not_reset_rate_limit(
    client, db_session, make_gallery, monkeypatch
):
    from clientgallery.core.settings import settings

    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT_ATTEMPTS", 3)
    make_gallery()
    statuses = [
        client.post(
            "/gallery/verify",
            json={"gallerySlug": "wedding-smith-2024", "password": "bad"},
            headers={"X-Forwarded-For": f"203.0.113.{i}"},
        ).status_code
        for i in range(6)
    ]
    assert statuses == [401, 401, 401, 429, 429, 429]


def test_rate_limit_is_per_client(db_session, make_gallery, monkeypatch):
    from clientgallery.core.settings import settings

    monkeypatch.setattr(settings, "VERIFY_RATE_LIMIT_ATTEMPTS", 2)
    make_gallery()
    for _ in range(2):
        with pytest.raises(Unauthorized):
            verify_gallery_access(db_session, "wedding-smith-2024", "bad", "10.0.0.1")
    with pytest.raises(RateLimited):
        verify_gallery_access(db_session, "wedding-smith-2024", "correct-pw", "10.0.0.1")
    gallery, _ = verify_gallery_access(db_session, "wedding-smith-2024", "correct-pw", "10.0.0.2")
    assert gallery.Slug == "wedding-smith-2024"


def test_verify_after_expiry_moved_into_future(client, db_session, make_gallery):
    gallery = make_gallery(expires_in_days=-1)
    gallery.ExpiryDate = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)
    db_session.commit()
    r = client.post(
        "/gallery/verify", json={"gallerySlug": "wedding-smith-2024", "password": "correct-pw"}
    )
    assert r.status_code == 200
