import base64
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

import config
from exceptions import InvalidImageError

logger = logging.getLogger(__name__)

MAX_ENCODED_SIZE_KB = 500


def validate_upload(image_bytes: bytes, content_type: Optional[str]) -> None:
    """
    Check an upload before it goes anywhere near the diagnostic service.
    Raises InvalidImageError with the HTTP status the API should answer with.
    """
    if not image_bytes:
        raise InvalidImageError("No file provided.", status_code=400)

    if content_type not in config.ALLOWED_CONTENT_TYPES:
        logger.warning(f"Invalid file type uploaded: {content_type}")
        raise InvalidImageError(
            "Invalid file type. Please upload a JPEG, PNG, or WEBP image.",
            status_code=422,
        )

    if len(image_bytes) > config.MAX_FILE_SIZE_BYTES:
        logger.warning(f"File uploaded exceeds size limit: {len(image_bytes)} bytes")
        raise InvalidImageError(
            f"File size exceeds limit of {config.MAX_FILE_SIZE_MB} MB.",
            status_code=413,
        )

    try:
        img = Image.open(io.BytesIO(image_bytes))
        width, height = img.size
        if width * height > config.MAX_IMAGE_PIXELS:
            logger.warning(f"Image dimensions too large: {width}x{height}")
            raise InvalidImageError(
                f"Image is too large ({width}x{height}). Please upload a smaller photo.",
                status_code=413,
            )
        img.verify()
    except Image.DecompressionBombError as e:
        logger.warning(f"Rejected decompression bomb: {e}")
        raise InvalidImageError(f"Image is too large: {e}", status_code=413)
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImageError(f"File is not a readable image: {e}", status_code=422)

    if getattr(img, "is_animated", False):
        raise InvalidImageError("Animated images are not supported. Please upload a still photo.", status_code=422)


def encode_image(image_bytes: bytes) -> str:
    """
    Convert image bytes to a base64 JPEG string, resizing/compressing
    until it fits the payload limit.
    """
    img = Image.open(io.BytesIO(image_bytes))

    if img.mode != 'RGB':
        img = img.convert('RGB')

    quality = 85
    while True:
        img_buffer = io.BytesIO()
        img.save(img_buffer, format="JPEG", quality=quality)
        size_kb = len(img_buffer.getvalue()) / 1024

        if size_kb <= MAX_ENCODED_SIZE_KB or quality <= 10:
            break

        width, height = img.size
        img = img.resize((int(width * 0.9), int(height * 0.9)), Image.LANCZOS)
        quality -= 5

    return base64.b64encode(img_buffer.getvalue()).decode('utf-8')


def to_data_url(base64_data: str) -> str:
    return f"data:image/jpeg;base64,{base64_data}"
