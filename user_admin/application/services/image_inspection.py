from typing import Optional
import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}

FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
}


def detect_image_format(data: bytes) -> Optional[str]:
    """Return the Pillow format name of an image payload, or None if it is not an image."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
            return image.format
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.debug(f"Payload is not a readable image: {e}")
        return None


def mime_type_for(image_format: Optional[str]) -> Optional[str]:
    if image_format is None:
        return None
    return FORMAT_MIME_TYPES.get(image_format.upper(), f"image/{image_format.lower()}")
