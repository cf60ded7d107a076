from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from unbind.errors import DecodeError

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


def strip_data_uri(image_b64: str) -> str:
    return _DATA_URI_PREFIX.sub("", image_b64.strip(), count=1)


def to_data_uri(image_b64: str, mime: str = "image/jpeg") -> str:
    if image_b64.startswith("data:"):
        return image_b64
    return f"data:{mime};base64,{image_b64}"


def decode_bytes(image_b64: str) -> bytes:
    payload = strip_data_uri(image_b64)
    if not payload:
        raise DecodeError("Image payload is empty")
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Image payload is not valid base64: {exc}") from exc


def open_image_bytes(raw: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"Image payload is not a decodable raster image: {exc}") from exc
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def decode_image(image_b64: str) -> Image.Image:
    return open_image_bytes(decode_bytes(image_b64))


def dimensions(image_b64: str) -> ImageDimensions:
    width, height = decode_image(image_b64).size
    return ImageDimensions(width=width, height=height)


def encode_jpeg(image: Image.Image, quality: int = 90) -> str:
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


__all__ = [
    "ImageDimensions",
    "decode_bytes",
    "decode_image",
    "dimensions",
    "encode_jpeg",
    "open_image_bytes",
    "strip_data_uri",
    "to_data_uri",
]
