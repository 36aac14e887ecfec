"""
JPEG thumbnails for uploaded images (tracking photos, site photos).
"""
import io
from typing import Optional

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError


log = structlog.get_logger(__name__)

THUMB_MAX_DIM = 400
THUMB_QUALITY = 80


def is_image(content_type: Optional[str], name: Optional[str] = None) -> bool:
    if content_type and content_type.lower().startswith("image/"):
        return True
    return bool(name) and name.lower().endswith((".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"))


def make_thumbnail(image_bytes: bytes, max_dim: int = THUMB_MAX_DIM) -> Optional[bytes]:
    """
    Downscale an image so its longest side is at most max_dim.

    Args:
        image_bytes: Original image bytes
        max_dim: Longest side of the thumbnail in pixels

    Returns:
        JPEG bytes, or None when the bytes are not a readable image
    """
    if not image_bytes:
        return None
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError) as e:
        log.warning("thumbnail_unreadable_image", error=str(e))
        return None

    # Flatten transparency onto white; JPEG has no alpha channel
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
    out = io.BytesIO()
    img.save(out, format="JPEG", quality=THUMB_QUALITY, optimize=True)
    return out.getvalue()
