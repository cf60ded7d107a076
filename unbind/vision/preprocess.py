from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageFilter

from unbind.io.input import decode_image, encode_jpeg, to_data_uri
from unbind.vision.models import BoundingBox

DETECTION_JPEG_QUALITY = 92
OCR_JPEG_QUALITY = 95
CROP_JPEG_QUALITY = 85


def preprocess_for_detection(image_b64: str) -> str:
    """Reduce glare and boost edge contrast before spine detection.

    Width and height of the output equal the input exactly; detection boxes
    are later converted to percentages using the original dimensions.
    """
    image = decode_image(image_b64)
    normalized = Image.fromarray(_normalize_luminance(np.asarray(image)))
    saturated = ImageEnhance.Color(normalized).enhance(1.1)
    sharpened = saturated.filter(ImageFilter.UnsharpMask(radius=1.0, percent=50, threshold=0))
    return to_data_uri(encode_jpeg(sharpened, quality=DETECTION_JPEG_QUALITY))


def preprocess_for_ocr(crop_b64: str) -> str:
    """Stronger contrast and sharpening tuned for small spine lettering."""
    image = decode_image(crop_b64)
    array = _normalize_luminance(np.asarray(image))
    array = cv2.convertScaleAbs(array, alpha=1.2, beta=-20)
    enhanced = Image.fromarray(array).filter(ImageFilter.UnsharpMask(radius=1.5, percent=100, threshold=0))
    return encode_jpeg(enhanced, quality=OCR_JPEG_QUALITY)


def crop(image_b64: str, box: BoundingBox) -> str:
    image = decode_image(image_b64)
    left, top, width, height = clamp_box(box, image.width, image.height)
    region = image.crop((left, top, left + width, top + height))
    return encode_jpeg(region, quality=CROP_JPEG_QUALITY)


def clamp_box(box: BoundingBox, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
    left = _round(box.x)
    top = _round(box.y)
    width = _round(box.width)
    height = _round(box.height)
    safe_left = max(0, min(left, image_width - 1))
    safe_top = max(0, min(top, image_height - 1))
    safe_width = max(1, min(width, image_width - safe_left))
    safe_height = max(1, min(height, image_height - safe_top))
    return safe_left, safe_top, safe_width, safe_height


def _normalize_luminance(rgb: np.ndarray) -> np.ndarray:
    lab = cv2.cvtColor(rgb, cv2.COLOR_RGB2LAB)
    lum = lab[:, :, 0].astype(np.float32)
    low, high = np.percentile(lum, (1, 99))
    if high - low < 1.0:
        return rgb.copy()
    stretched = (lum - low) * (255.0 / (high - low))
    lab[:, :, 0] = np.clip(stretched, 0, 255).astype(np.uint8)
    return cv2.cvtColor(lab, cv2.COLOR_LAB2RGB)


def _round(value: float) -> int:
    value = float(value)
    # NaN and infinities collapse to 0, then clamping takes over
    if not np.isfinite(value):
        return 0
    # half-up: 2.5 -> 3
    return int(np.floor(value + 0.5))


__all__ = [
    "clamp_box",
    "crop",
    "preprocess_for_detection",
    "preprocess_for_ocr",
]
