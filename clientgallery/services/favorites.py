import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clientgallery.core.errors import Conflict, NotFound
from clientgallery.models.gallery import Favorite, Gallery, GalleryImage

audit = logging.getLogger("audit")

# A toggle that collides with a concurrent insert is re-run this many times.
MAX_TOGGLE_ATTEMPTS = 3


def _get_visible_image(db: Session, gallery: Gallery, image_id: int) -> GalleryImage:
    image = (
        db.query(GalleryImage)
        .filter(
            GalleryImage.ImageID == image_id,
            GalleryImage.GalleryID == gallery.GalleryID,
            GalleryImage.IsPublic.is_(True),
        )
        .first()
    )
    if image is None:
        raise NotFound("Image not found.")
    return image


def toggle_favorite(db: Session, gallery: Gallery, image_id: int, client_ip: str) -> dict:
    """Flip the favorite marker for (client_ip, image_id).

    Delete when present, insert when absent. The insert runs in a SAVEPOINT so
    a unique-constraint hit from a concurrent toggle only undoes that insert;
    the loop then re-reads and toggles the row the other request created.
    """
    image = _get_visible_image(db, gallery, image_id)

    for _attempt in range(MAX_TOGGLE_ATTEMPTS):
        existing = (
            db.query(Favorite)
            .filter(Favorite.ClientIP == client_ip, Favorite.ImageID == image.ImageID)
            .first()
        )
        if existing is not None:
            db.delete(existing)
            db.commit()
            is_favorite = False
            break
        try:
            with db.begin_nested():
                db.add(
                    Favorite(
                        GalleryID=gallery.GalleryID,
                        ImageID=image.ImageID,
                        ClientIP=client_ip,
                    )
                )
            db.commit()
            is_favorite = True
            break
        except IntegrityError:
            audit.info(
                "gallery.favorite.race",
                extra={"gallery_id": gallery.GalleryID, "image_id": image.ImageID},
            )
            continue
    else:
        raise Conflict("Favorite is being updated elsewhere. Please try again.")

    audit.info(
        "gallery.favorite.toggled",
        extra={
            "gallery_id": gallery.GalleryID,
            "image_id": image.ImageID,
            "client": client_ip,
            "is_favorite": is_favorite,
        },
    )
    return {"isFavorite": is_favorite}


def favorite_image_ids(db: Session, gallery_id: int, client_ip: str) -> set[int]:
    rows = (
        db.query(Favorite.ImageID)
        .filter(Favorite.GalleryID == gallery_id, Favorite.ClientIP == client_ip)
        .all()
    )
    return {int(r[0]) for r in rows}
