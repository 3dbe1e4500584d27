"""Image inspection helpers."""

import io

from PIL import Image, UnidentifiedImageError

from commercepix.services.exceptions import ValidationError


def read_dimensions(data: bytes) -> tuple[int, int]:
    """Return (width, height) of an encoded image.

    Raises:
        ValidationError: Bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Unreadable image data: {e}") from e
