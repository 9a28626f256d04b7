import io
import os
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from clientgallery.core.errors import ValidationError

# Extension -> Pillow format. Variants keep the format of the uploaded file.
FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
}
EXTENSION_FOR_MIME = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass
class ImageVariant:
    data: bytes
    width: int
    height: int
    format: str


def pick_extension(original_name: str, mime: str) -> str:
    """Original extension when it matches the content type, else the canonical one."""
    ext = os.path.splitext(original_name or "")[1].lower()
    canonical = EXTENSION_FOR_MIME.get(mime)
    if ext in FORMATS and (canonical is None or FORMATS[ext] == FORMATS[canonical]):
        return ext
    if canonical is None:
        raise ValidationError(f"Unsupported image type: {mime}", code="unsupported_type")
    return canonical


def open_image(data: bytes) -> Image.Image:
    try:
        im = Image.open(io.BytesIO(data))
        im.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValidationError("File is not a readable image.", code="unreadable_image") from exc
    # Respect camera orientation before measuring or resizing
    return ImageOps.exif_transpose(im)


def _encode(im: Image.Image, fmt: str, quality: int) -> bytes:
    out = io.BytesIO()
    if fmt == "JPEG":
        if im.mode not in ("RGB", "L"):
            im = im.convert("RGB")
        im.save(out, format="JPEG", quality=int(quality), optimize=True, progressive=True)
    elif fmt == "WEBP":
        im.save(out, format="WEBP", quality=int(quality), method=4)
    else:
        if im.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            im = im.convert("RGBA")
        im.save(out, format="PNG", optimize=True)
    return out.getvalue()


def render_full(
    im: Image.Image, fmt: str, max_dimension: int = 2000, quality: int = 90
) -> ImageVariant:
    """Fit inside max_dimension x max_dimension keeping aspect ratio; never upscales."""
    full = im.copy()
    full.thumbnail((int(max_dimension), int(max_dimension)), Image.Resampling.LANCZOS)
    return ImageVariant(_encode(full, fmt, quality), full.width, full.height, fmt)


def render_thumbnail(
    im: Image.Image, fmt: str, size: int = 400, quality: int = 80
) -> ImageVariant:
    """Cover-fit crop to a size x size square for grid display."""
    thumb = ImageOps.fit(im, (int(size), int(size)), Image.Resampling.LANCZOS)
    return ImageVariant(_encode(thumb, fmt, quality), thumb.width, thumb.height, fmt)


def render_watermark(
    im: Image.Image,
    fmt: str,
    text: str,
    opacity: int = 96,
    max_dimension: int = 2000,
    quality: int = 90,
) -> Optional[ImageVariant]:
    """Full-size copy with `text` stamped across the lower right corner."""
    if not text:
        return None
    base = im.copy()
    base.thumbnail((int(max_dimension), int(max_dimension)), Image.Resampling.LANCZOS)
    base = base.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    font_size = max(12, base.width // 24)
    font = ImageFont.load_default(size=font_size)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    margin = max(8, base.width // 50)
    x = max(0, base.width - (right - left) - margin)
    y = max(0, base.height - (bottom - top) - margin)
    alpha = max(0, min(255, int(opacity)))
    draw.text((x, y), text, font=font, fill=(255, 255, 255, alpha))
    stamped = Image.alpha_composite(base, overlay)
    if fmt != "PNG" and fmt != "WEBP":
        stamped = stamped.convert("RGB")
    return ImageVariant(_encode(stamped, fmt, quality), stamped.width, stamped.height, fmt)
