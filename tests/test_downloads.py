import pytest

from clientgallery.core.errors import FileMissing, QuotaExceeded
from clientgallery.models import Download
from clientgallery.services.downloads import admin_download_image, count_downloads, download_image


def test_download_returns_file_with_quota_headers(
    client, db_session, make_gallery, add_image, verified_client
):
    gallery = make_gallery(download_limit=3)
    image = add_image(gallery, original_name="First Dance.jpg")
    verified_client()

    r = client.get(f"/gallery/wedding-smith-2024/download/{image.ImageID}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/jpeg"
    assert r.content[:2] == b"\xff\xd8"
    assert 'filename="First Dance.jpg"' in r.headers["content-disposition"]
    assert r.headers["content-disposition"].startswith("attachment")
    assert r.headers["x-downloads-used"] == "1"
    assert r.headers["x-downloads-remaining"] == "2"
    assert count_downloads(db_session, gallery.GalleryID) == 1


def test_quota_allows_exactly_limit_downloads(db_session, make_gallery, add_image, storage):
    limit = 4
    gallery = make_gallery(download_limit=limit)
    image = add_image(gallery)
    for i in range(limit):
        payload = download_image(db_session, storage, gallery, image.ImageID, "10.0.0.1")
        assert payload.downloads_used == i + 1
    with pytest.raises(QuotaExceeded):
        download_image(db_session, storage, gallery, image.ImageID, "10.0.0.1")
    assert count_downloads(db_session, gallery.GalleryID) == limit


def test_quota_is_shared_by_every_client_of_a_gallery(
    client, db_session, make_gallery, add_image, storage, verified_client
):
    gallery = make_gallery(download_limit=2)
    image = add_image(gallery)
    for ip in ("10.0.0.1", "10.0.0.2"):
        download_image(db_session, storage, gallery, image.ImageID, ip)

    # A third address, here the test client's own socket, finds the quota used up
    verified_client()
    r = client.get(f"/gallery/wedding-smith-2024/download/{image.ImageID}")
    assert r.status_code == 429
    assert r.json()["error"] == "download_limit_reached"
    assert count_downloads(db_session, gallery.GalleryID) == 2


def test_zero_limit_blocks_all_downloads(db_session, make_gallery, add_image, storage):
    gallery = make_gallery(download_limit=0)
    image = add_image(gallery)
    with pytest.raises(QuotaExceeded):
        download_image(db_session, storage, gallery, image.ImageID, "10.0.0.1")
    assert count_downloads(db_session, gallery.GalleryID) == 0


def test_private_or_foreign_image_is_not_found(
    client, db_session, make_gallery, add_image, verified_client
):
    gallery = make_gallery()
    other = make_gallery(slug="portrait-jones-2024", title="Jones")
    hidden = add_image(gallery, is_public=False)
    foreign = add_image(other)
    verified_client()
    for image_id in (hidden.ImageID, foreign.ImageID, 999999):
        r = client.get(f"/gallery/wedding-smith-2024/download/{image_id}")
        assert r.status_code == 404
    assert count_downloads(db_session, gallery.GalleryID) == 0


def test_missing_file_is_not_charged(db_session, make_gallery, add_image, storage):
    gallery = make_gallery()
    image = add_image(gallery)
    storage.delete(image.FilePath)
    with pytest.raises(FileMissing):
        download_image(db_session, storage, gallery, image.ImageID, "10.0.0.1")
    assert count_downloads(db_session, gallery.GalleryID) == 0


def test_download_requires_access(client, db_session, make_gallery, add_image):
    gallery = make_gallery()
    image = add_image(gallery)
    r = client.get(f"/gallery/wedding-smith-2024/download/{image.ImageID}")
    assert r.status_code == 401
    assert db_session.query(Download).count() == 0


def test_thumbnail_served_without_charging_quota(
    client, db_session, make_gallery, add_image, verified_client
):
    gallery = make_gallery(download_limit=1)
    image = add_image(gallery)
    verified_client()
    r = client.get(f"/gallery/wedding-smith-2024/thumbnails/{image.ImageID}")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/jpeg"
    assert count_downloads(db_session, gallery.GalleryID) == 0


def test_admin_preview_does_not_record_download(db_session, make_gallery, add_image, storage):
    gallery = make_gallery(download_limit=0)
    image = add_image(gallery, is_public=False)
    payload = admin_download_image(db_session, storage, gallery.GalleryID, image.ImageID)
    assert payload.content
    assert payload.downloads_used is None
    assert count_downloads(db_session, gallery.GalleryID) == 0
