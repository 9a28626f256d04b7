import pytest

from clientgallery.core.errors import ValidationError
from clientgallery.models import GalleryImage
from clientgallery.services.ordering import rebuild_gallery_order, reorder_images


def _orders(db_session, gallery):
    rows = (
        db_session.query(GalleryImage.ImageID, GalleryImage.Order)
        .filter(GalleryImage.GalleryID == gallery.GalleryID)
        .order_by(GalleryImage.ImageID)
        .all()
    )
    return {image_id: order for image_id, order in rows}


def test_reorder_applies_all_positions(db_session, make_gallery, add_image):
    gallery = make_gallery()
    a, b, c = (add_image(gallery, order=i) for i in range(3))
    reorder_images(
        db_session,
        gallery.GalleryID,
        [
            {"imageId": a.ImageID, "order": 2},
            {"imageId": b.ImageID, "order": 0},
            {"imageId": c.ImageID, "order": 1},
        ],
    )
    assert _orders(db_session, gallery) == {a.ImageID: 2, b.ImageID: 0, c.ImageID: 1}


def test_reorder_rejects_foreign_image_without_changes(db_session, make_gallery, add_image):
    gallery = make_gallery()
    other = make_gallery(slug="portrait-jones-2024", title="Jones")
    a = add_image(gallery, order=0)
    b = add_image(gallery, order=1)
    stranger = add_image(other, order=0)
    before = _orders(db_session, gallery)
    with pytest.raises(ValidationError):
        reorder_images(
            db_session,
            gallery.GalleryID,
            [{"imageId": a.ImageID, "order": 1}, {"imageId": stranger.ImageID, "order": 0}],
        )
    assert _orders(db_session, gallery) == before
    assert before == {a.ImageID: 0, b.ImageID: 1}


def test_reorder_rejects_colliding_positions(db_session, make_gallery, add_image):
    gallery = make_gallery()
    a = add_image(gallery, order=0)
    add_image(gallery, order=1)
    before = _orders(db_session, gallery)
    # Moving only `a` onto position 1 would clash with the untouched image
    with pytest.raises(ValidationError):
        reorder_images(db_session, gallery.GalleryID, [{"imageId": a.ImageID, "order": 1}])
    assert _orders(db_session, gallery) == before


@pytest.mark.parametrize(
    "entries",
    [
        [],
        [{"imageId": 1, "order": -1}],
        [{"imageId": 1, "order": 0}, {"imageId": 1, "order": 1}],
        [{"imageId": "x", "order": 0}],
    ],
)
def test_reorder_input_validation(db_session, make_gallery, entries):
    gallery = make_gallery()
    with pytest.raises(ValidationError):
        reorder_images(db_session, gallery.GalleryID, entries)


def test_reorder_endpoint(admin_client, db_session, make_gallery, add_image):
    gallery = make_gallery()
    a = add_image(gallery, order=0)
    b = add_image(gallery, order=1)
    r = admin_client.post(
        f"/admin/galleries/{gallery.GalleryID}/images/reorder",
        json={
            "imageOrders": [
                {"imageId": a.ImageID, "order": 1},
                {"imageId": b.ImageID, "order": 0},
            ]
        },
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "updated": 2}

    r = admin_client.post(
        f"/admin/galleries/{gallery.GalleryID}/images/reorder",
        json={"imageOrders": [{"imageId": 424242, "order": 3}]},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"


def test_rebuild_compacts_gaps(db_session, make_gallery, add_image):
    gallery = make_gallery()
    a = add_image(gallery, order=10)
    b = add_image(gallery, order=3)
    c = add_image(gallery, order=3)
    assert rebuild_gallery_order(db_session, gallery.GalleryID) == 3
    # Ties keep upload order
    assert _orders(db_session, gallery) == {b.ImageID: 0, c.ImageID: 1, a.ImageID: 2}


def test_rebuild_endpoint(admin_client, db_session, make_gallery, add_image):
    gallery = make_gallery()
    add_image(gallery, order=5)
    add_image(gallery, order=9)
    r = admin_client.post(f"/admin/galleries/{gallery.GalleryID}/rebuild-order")
    assert r.status_code == 200
    assert r.json()["count"] == 2
    assert sorted(_orders(db_session, gallery).values()) == [0, 1]


def test_delete_image_renumbers(admin_client, db_session, make_gallery, add_image, storage):
    gallery = make_gallery()
    a, b, c = (add_image(gallery, order=i) for i in range(3))
    removed_key = b.FilePath
    r = admin_client.delete(f"/admin/galleries/{gallery.GalleryID}/images/{b.ImageID}")
    assert r.status_code == 200
    assert _orders(db_session, gallery) == {a.ImageID: 0, c.ImageID: 1}
    assert not storage.exists(removed_key)
