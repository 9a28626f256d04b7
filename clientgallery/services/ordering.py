import logging
from typing import Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clientgallery.core.errors import ValidationError
from clientgallery.models.gallery import GalleryImage

audit = logging.getLogger("audit")


def reorder_images(db: Session, gallery_id: int, image_orders: Iterable[Mapping]) -> int:
    """Apply explicit display positions in one transaction.

    `image_orders` is a list of ``{"imageId": int, "order": int}`` entries. Every
    id must belong to the gallery, orders must be non-negative, and the final
    order values across the whole gallery must be distinct. Nothing is written
    unless every entry is valid.
    """
    entries = list(image_orders or [])
    if not entries:
        raise ValidationError("imageOrders must contain at least one entry.")

    wanted: dict[int, int] = {}
    for entry in entries:
        try:
            image_id = int(entry["imageId"])
            order = int(entry["order"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Each entry needs an integer imageId and order.")
        if order < 0:
            raise ValidationError("Order values must be zero or greater.")
        if image_id in wanted:
            raise ValidationError(f"Image {image_id} is listed more than once.")
        wanted[image_id] = order

    images = db.query(GalleryImage).filter(GalleryImage.GalleryID == gallery_id).all()
    by_id = {img.ImageID: img for img in images}
    foreign = sorted(set(wanted) - set(by_id))
    if foreign:
        raise ValidationError(f"Images do not belong to this gallery: {foreign}")

    final = {img.ImageID: wanted.get(img.ImageID, img.Order) for img in images}
    if len(set(final.values())) != len(final):
        raise ValidationError("Resulting image order contains duplicate positions.")

    try:
        for image_id, order in wanted.items():
            by_id[image_id].Order = order
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    audit.info("gallery.images.reordered", extra={"gallery_id": gallery_id, "count": len(wanted)})
    return len(wanted)


def rebuild_gallery_order(db: Session, gallery_id: int, commit: bool = True) -> int:
    """Renumber a gallery's images to 0..n-1, keeping their relative order."""
    images = (
        db.query(GalleryImage)
        .filter(GalleryImage.GalleryID == gallery_id)
        .order_by(GalleryImage.Order.asc(), GalleryImage.ImageID.asc())
        .all()
    )
    for position, image in enumerate(images):
        if image.Order != position:
            image.Order = position
    if commit:
        db.commit()
    return len(images)
