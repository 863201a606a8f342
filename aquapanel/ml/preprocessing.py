from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, List, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageOps

from aquapanel.core.errors import InvalidImageError
from aquapanel.services.ocr import PageSegMode


logger = logging.getLogger(__name__)

_CONTRAST_SCALE = 2.0
_CONTRAST_OFFSET = -50.0
_SHARPEN_SIGMA = 2.0
_THRESHOLD_CUTOFF = 128


@dataclass(frozen=True)
class PreprocessedVariant:
    """One rendering of a quadrant, ready for a single OCR pass."""
    name: str
    image: np.ndarray
    page_mode: PageSegMode


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode an upload into a BGR array, honouring EXIF orientation."""
    if not image_bytes:
        raise InvalidImageError("No image payload provided")
    try:
        with Image.open(BytesIO(image_bytes)) as pil_img:
            pil_img = ImageOps.exif_transpose(pil_img)
            pil_img = pil_img.convert("RGB")
            image = cv2.cvtColor(np.array(pil_img), cv2.COLOR_RGB2BGR)
    except Exception as exc:
        raise InvalidImageError("Unable to decode image for OCR processing") from exc

    height, width = image.shape[:2]
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Invalid image dimensions: {width}x{height}")
    return image


def _greyscale(region: np.ndarray) -> np.ndarray:
    if region.ndim == 2:
        return region
    return cv2.cvtColor(region, cv2.COLOR_BGR2GRAY)


def _normalize(gray: np.ndarray) -> np.ndarray:
    # Stretch the darkest pixel to 0 and the brightest to 255
    return cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)


def _linear_contrast(gray: np.ndarray, scale: float, offset: float) -> np.ndarray:
    # Clamp rather than cv2.convertScaleAbs, which would mirror negatives back up
    stretched = gray.astype(np.float32) * scale + offset
    return np.clip(stretched, 0, 255).astype(np.uint8)


def _sharpen(gray: np.ndarray, sigma: float) -> np.ndarray:
    # Unsharp mask
    blurred = cv2.GaussianBlur(gray, (0, 0), sigma)
    return cv2.addWeighted(gray, 1.5, blurred, -0.5, 0)


def _binary_threshold(gray: np.ndarray, cutoff: int) -> np.ndarray:
    _, binary = cv2.threshold(gray, cutoff, 255, cv2.THRESH_BINARY)
    return binary


def _upscale(gray: np.ndarray, factor: int) -> np.ndarray:
    """Enlarge small digit glyphs with a Lanczos filter."""
    if factor <= 1:
        return gray
    h, w = gray.shape[:2]
    return cv2.resize(gray, (w * factor, h * factor), interpolation=cv2.INTER_LANCZOS4)


def preprocess_basic(region: np.ndarray, upscale: int = 2) -> np.ndarray:
    gray = _normalize(_greyscale(region))
    return _upscale(gray, upscale)


def preprocess_high_contrast(region: np.ndarray, upscale: int = 2) -> np.ndarray:
    """Aggressive contrast stretch followed by sharpening, for faded or low-light displays."""
    gray = _normalize(_greyscale(region))
    stretched = _linear_contrast(gray, _CONTRAST_SCALE, _CONTRAST_OFFSET)
    sharpened = _sharpen(stretched, _SHARPEN_SIGMA)
    return _upscale(sharpened, upscale)


def preprocess_threshold(region: np.ndarray, upscale: int = 2) -> np.ndarray:
    """Pure black/white rendering for crisp segment or LCD digits."""
    gray = _normalize(_greyscale(region))
    binary = _binary_threshold(gray, _THRESHOLD_CUTOFF)
    return _upscale(binary, upscale)


Strategy = Tuple[str, Callable[[np.ndarray, int], np.ndarray], PageSegMode]

STRATEGIES: Tuple[Strategy, ...] = (
    ("basic", preprocess_basic, PageSegMode.BLOCK),
    ("high_contrast", preprocess_high_contrast, PageSegMode.SINGLE_WORD),
    ("threshold", preprocess_threshold, PageSegMode.SINGLE_WORD),
)


def build_variants(
    region: np.ndarray,
    *,
    upscale: int = 2,
    strategies: Sequence[Strategy] = STRATEGIES,
    label: str = "",
) -> List[PreprocessedVariant]:
    """
    Run every strategy on a quadrant.

    Strategies are independent: one raising only drops its own variant.
    The returned list keeps strategy order, which is also the tie-break
    order for selection.
    """
    if region.size == 0:
        logger.warning("Empty region for %s - no variants produced", label or "region")
        return []

    variants: List[PreprocessedVariant] = []
    for name, func, page_mode in strategies:
        try:
            processed = func(region, upscale)
        except Exception:
            logger.exception("Preprocessing '%s' failed for %s", name, label or "region")
            continue
        variants.append(PreprocessedVariant(name=name, image=processed, page_mode=page_mode))
    return variants
