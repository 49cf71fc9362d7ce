"""
Image helpers. Reads dimensions of images embedded as base64 data URIs.
"""
import base64
import binascii
import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError


log = logging.getLogger("lexhtml")


def decode_data_uri(src: str) -> bytes | None:
    """Returns the payload of a base64 `data:` URI, or None for anything else."""
    if not src.startswith('data:'):
        return None
    header, sep, payload = src.partition(',')
    if not sep or not header.endswith(';base64'):
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        log.warning(f"Invalid base64 image payload: {e}")
        return None


def probe_image_size(src: str) -> tuple[int, int] | None:
    """Returns (width, height) of a data-URI image using Pillow."""
    data = decode_data_uri(src)
    if data is None:
        return None
    try:
        with Image.open(BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        log.warning(f"Could not read embedded image: {e}")
        return None
