import io

from PIL import Image

from clientgallery.models import GalleryImage
from clientgallery.services.ingestion import IncomingFile, ingest_images


def _jpeg(make, name, width=64, height=48):
    return ("images", (name, make(width, height), "image/jpeg"))


def _rows(db_session, gallery):
    return (
        db_session.query(GalleryImage)
        .filter(GalleryImage.GalleryID == gallery.GalleryID)
        .order_by(GalleryImage.Order)
        .all()
    )


def test_batch_with_one_invalid_file_keeps_the_valid_ones(
    admin_client, db_session, make_gallery, image_bytes
):
    gallery = make_gallery()
    files = [_jpeg(image_bytes, f"photo{i}.jpg") for i in range(3)]
    files.append(("images", ("notes.txt", b"just some text", "text/plain")))
    files += [_jpeg(image_bytes, f"photo{i}.jpg") for i in range(3, 5)]

    r = admin_client.post(f"/admin/galleries/{gallery.GalleryID}/images", files=files)
    assert r.status_code == 200, r.text
    body = r.json()
    assert len(body["created"]) == 5
    assert body["failures"] == [
        {
            "fileName": "notes.txt",
            "error": "unsupported_type",
            "message": "Only JPEG, PNG and WebP images are allowed.",
        }
    ]

    rows = _rows(db_session, gallery)
    assert [r.Order for r in rows] == [0, 1, 2, 3, 4]
    assert [r.OriginalName for r in rows] == [f"photo{i}.jpg" for i in range(5)]


def test_batch_with_nothing_valid_is_a_400(admin_client, db_session, make_gallery):
    gallery = make_gallery()
    files = [("images", ("a.gif", b"GIF89a....", "image/gif"))]
    r = admin_client.post(f"/admin/galleries/{gallery.GalleryID}/images", files=files)
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["created"] == []
    assert len(body["failures"]) == 1
    assert _rows(db_session, gallery) == []


def test_second_batch_continues_after_existing_order(
    db_session, make_gallery, add_image, storage, image_bytes
):
    gallery = make_gallery()
    add_image(gallery, order=0)
    add_image(gallery, order=7)
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [
            IncomingFile("x.jpg", "image/jpeg", image_bytes()),
            IncomingFile("y.jpg", "image/jpeg", image_bytes()),
        ],
    )
    assert [img.Order for img in result.created] == [8, 9]
    assert result.failures == []


def test_variants_are_written_and_sized(db_session, make_gallery, storage, image_bytes):
    gallery = make_gallery()
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [IncomingFile("wide.jpg", "image/jpeg", image_bytes(3000, 1500))],
    )
    (image,) = result.created
    assert (image.Width, image.Height) == (2000, 1000)
    assert image.FilePath == f"wedding-smith-2024/{image.FileName}"
    assert image.ThumbnailPath == f"wedding-smith-2024/thumbnails/thumb_{image.FileName}"
    assert image.WatermarkPath is None
    assert image.FileName.endswith(".jpg")

    full = Image.open(io.BytesIO(storage.read(image.FilePath)))
    thumb = Image.open(io.BytesIO(storage.read(image.ThumbnailPath)))
    assert full.size == (2000, 1000)
    assert thumb.size == (400, 400)
    assert image.FileSize == len(storage.read(image.FilePath))


def test_small_images_are_not_upscaled(db_session, make_gallery, storage, image_bytes):
    gallery = make_gallery()
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [IncomingFile("tiny.png", "image/png", image_bytes(120, 80, fmt="PNG"))],
    )
    (image,) = result.created
    assert (image.Width, image.Height) == (120, 80)
    assert image.FileName.endswith(".png")


def test_watermark_variant_when_configured(
    db_session, make_gallery, storage, monkeypatch, image_bytes
):
    from clientgallery.core.settings import settings

    monkeypatch.setattr(settings, "WATERMARK_TEXT", "Studio Proof")
    gallery = make_gallery()
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [IncomingFile("p.jpg", "image/jpeg", image_bytes(800, 600))],
    )
    (image,) = result.created
    assert image.WatermarkPath == f"wedding-smith-2024/watermarked/wm_{image.FileName}"
    assert storage.exists(image.WatermarkPath)


def test_oversized_and_empty_files_are_reported(
    db_session, make_gallery, storage, monkeypatch, image_bytes
):
    from clientgallery.core.settings import settings

    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 1024 * 1024)
    gallery = make_gallery()
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [
            IncomingFile("big.jpg", "image/jpeg", b"\xff\xd8" + b"0" * (1024 * 1024)),
            IncomingFile("empty.jpg", "image/jpeg", b""),
            IncomingFile("ok.jpg", "image/jpeg", image_bytes()),
        ],
    )
    assert [f.error for f in result.failures] == ["file_too_large", "empty_file"]
    assert [img.Order for img in result.created] == [0]


def test_corrupt_image_leaves_no_row_or_files(
    db_session, make_gallery, storage, tmp_path, image_bytes
):
    gallery = make_gallery()
    result = ingest_images(
        db_session,
        storage,
        gallery,
        [IncomingFile("broken.jpg", "image/jpeg", b"\xff\xd8\xff\xe0" + b"garbage" * 50)],
    )
    assert result.created == []
    assert result.failures[0].error in ("unreadable_image", "unsupported_type")
    assert _rows(db_session, gallery) == []
    gallery_dir = tmp_path / "galleries" / "wedding-smith-2024"
    written = [p for p in gallery_dir.rglob("*") if p.is_file()]
    assert written == []


def test_upload_requires_admin(client, db_session, make_gallery, image_bytes):
    gallery = make_gallery()
    files = [_jpeg(image_bytes, "a.jpg")]
    r = client.post(f"/admin/galleries/{gallery.GalleryID}/images", files=files)
    assert r.status_code == 401
