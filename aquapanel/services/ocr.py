import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import List, Optional, Sequence

import numpy as np

from aquapanel.core.config import get_settings


logger = logging.getLogger(__name__)

DIGIT_ALLOWLIST = "0123456789.-"


class PageSegMode(str, Enum):
    """How much text the engine should expect in a variant.

    Values are the matching Tesseract ``--psm`` numbers.
    """

    BLOCK = "6"
    SINGLE_WORD = "8"


@dataclass(frozen=True)
class OCRObservation:
    text: str
    confidence: float  # 0-100


class EasyOCRService:
    """Thin wrapper around EasyOCR so it can be dependency-injected."""

    name = "easyocr"

    def __init__(self, languages: Optional[Sequence[str]] = None, gpu: bool = False) -> None:
        import easyocr

        self._reader = easyocr.Reader(list(languages or ("en",)), gpu=gpu, verbose=False)

    def recognize(
        self,
        image: np.ndarray,
        *,
        allowlist: str = DIGIT_ALLOWLIST,
        page_mode: PageSegMode = PageSegMode.SINGLE_WORD,
    ) -> OCRObservation:
        detections = self._reader.readtext(
            image,
            allowlist=allowlist,
            detail=1,
            paragraph=False,
            decoder="greedy",
        )
        logger.debug("EasyOCR returned %d detections (%s)", len(detections), page_mode.name)
        return _observation_from_detections(detections, page_mode)


def _observation_from_detections(detections: List, page_mode: PageSegMode) -> OCRObservation:
    """
    Collapse EasyOCR detections into one observation.

    BLOCK reads every detection left to right and averages confidence.
    SINGLE_WORD keeps only the most confident detection.
    """
    if not detections:
        return OCRObservation(text="", confidence=0.0)

    if page_mode is PageSegMode.SINGLE_WORD:
        _, text, conf = max(detections, key=lambda d: d[2])
        return OCRObservation(text=str(text).strip(), confidence=float(conf) * 100.0)

    ordered = sorted(detections, key=lambda d: _box_left(d[0]))
    text = ""
    last_right = None
    for bbox, part, _ in ordered:
        part = str(part).strip()
        if last_right is not None:
            # Boxes closer than half a glyph height are pieces of one number
            gap = _box_left(bbox) - last_right
            if gap > _box_height(bbox) * _JOIN_GAP_RATIO:
                text += " "
        text += part
        last_right = _box_right(bbox)
    confidence = sum(float(d[2]) for d in ordered) / len(ordered)
    return OCRObservation(text=text.strip(), confidence=confidence * 100.0)


_JOIN_GAP_RATIO = 0.5


def _box_left(bbox) -> float:
    return min(float(point[0]) for point in bbox) if bbox else 0.0


def _box_right(bbox) -> float:
    return max(float(point[0]) for point in bbox) if bbox else 0.0


def _box_height(bbox) -> float:
    if not bbox:
        return 0.0
    ys = [float(point[1]) for point in bbox]
    return max(ys) - min(ys)


class TesseractOCRService:
    """Tesseract via pytesseract, for hosts without a Torch install."""

    name = "tesseract"

    def __init__(self, language: str = "eng", tesseract_cmd: str = "") -> None:
        import pytesseract

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._tess = pytesseract
        self._language = language

    def recognize(
        self,
        image: np.ndarray,
        *,
        allowlist: str = DIGIT_ALLOWLIST,
        page_mode: PageSegMode = PageSegMode.SINGLE_WORD,
    ) -> OCRObservation:
        cfg = f"--oem 3 --psm {page_mode.value} -c tessedit_char_whitelist={allowlist}"
        data = self._tess.image_to_data(
            image,
            lang=self._language,
            config=cfg,
            output_type=self._tess.Output.DICT,
        )
        words: List[str] = []
        confidences: List[float] = []
        for word, conf in zip(data.get("text", []), data.get("conf", [])):
            word = str(word).strip()
            if not word:
                continue
            words.append(word)
            try:
                confidences.append(max(0.0, float(conf)))
            except (TypeError, ValueError):
                confidences.append(0.0)
        if not words:
            return OCRObservation(text="", confidence=0.0)
        return OCRObservation(text=" ".join(words), confidence=sum(confidences) / len(confidences))


# EasyOCR language codes differ from Tesseract's traineddata names
_TESSERACT_LANGUAGES = {"en": "eng"}


@lru_cache(maxsize=1)
def get_ocr_service():
    """Build the configured OCR engine once; loading the models is expensive."""
    settings = get_settings()
    if settings.ocr_engine == "tesseract":
        language = _TESSERACT_LANGUAGES.get(settings.ocr_language, settings.ocr_language)
        logger.info("Using Tesseract OCR engine (lang=%s)", language)
        return TesseractOCRService(language=language, tesseract_cmd=settings.tesseract_cmd)
    if settings.ocr_engine != "easyocr":
        raise ValueError(f"Unknown OCR_ENGINE: {settings.ocr_engine!r}")
    logger.info("Using EasyOCR engine (lang=%s, gpu=%s)", settings.ocr_language, settings.ocr_gpu)
    return EasyOCRService(languages=(settings.ocr_language,), gpu=settings.ocr_gpu)
