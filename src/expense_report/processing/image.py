import io
import logging
from typing import Tuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp", "GIF": "image/gif"}
MAX_SIZE = (2048, 2048)


def prepare_for_model(data: bytes, name: str) -> Tuple[bytes, str]:
    """Shrinks a receipt picture before it is sent to the extraction model.

    Keeps the original format when the model accepts it (JPEG, PNG, WebP, GIF),
    re-encodes anything else (HEIC, TIFF, AVIF...) as JPEG.
    Returns (image_bytes, media_type).
    """
    try:
        original = Image.open(io.BytesIO(data))
        original_format = original.format
        image = ImageOps.exif_transpose(original)
        output_format = original_format if original_format in SUPPORTED_FORMATS else "JPEG"

        if output_format == "JPEG" and image.mode != "RGB":
            image = image.convert("RGB")

        image.thumbnail(MAX_SIZE)

        buffer = io.BytesIO()
        image.save(buffer, format=output_format, quality=85)
        logger.debug("Prepared %s for the model: %s %dx%d", name, output_format, image.width, image.height)
        return buffer.getvalue(), SUPPORTED_FORMATS[output_format]

    except Exception as e:
        logger.error("Image processing failed for %s: %s", name, e)
        raise ValueError(f"Could not process image {name}. File might be corrupted or unsupported.") from e


def decode_image(data: bytes) -> Image.Image:
    """Decodes raw bytes into an upright RGB image, fully loaded in memory."""
    image = Image.open(io.BytesIO(data))
    image.load()
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
