from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from aquapanel.core.config import get_settings
from aquapanel.ml.candidates import Candidate, extract_candidate, format_value, select_candidate
from aquapanel.ml.preprocessing import STRATEGIES, Strategy, build_variants, decode_image
from aquapanel.ml.quadrants import Parameter, Region, crop_region, partition_quadrants
from aquapanel.services.ocr import DIGIT_ALLOWLIST, get_ocr_service


logger = logging.getLogger(__name__)

ExtractionResult = Dict[str, Optional[str]]


def empty_result() -> ExtractionResult:
    return {parameter.value: None for parameter in Parameter}


class QuadrantExtractor:
    """
    Reads the four gauges of a panel photo, one per image quadrant.

    Each quadrant goes through every preprocessing strategy, every variant
    gets its own OCR pass, and the most confident in-range number wins.
    Quadrants are processed concurrently and fail independently: a quadrant
    that cannot be read resolves to None while the others still report.
    """

    def __init__(
        self,
        engine,
        *,
        upscale: int = 2,
        max_workers: int = 4,
        strategies: Sequence[Strategy] = STRATEGIES,
        allowlist: str = DIGIT_ALLOWLIST,
        debug_dir: Optional[str] = None,
    ) -> None:
        self._engine = engine
        self._upscale = upscale
        self._max_workers = max(1, max_workers)
        self._strategies = tuple(strategies)
        self._allowlist = allowlist
        self._debug_dir = debug_dir

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        """Decode an upload and extract all four readings.

        Raises InvalidImageError if the bytes are not a usable image.
        """
        image = decode_image(image_bytes)
        return self.extract_image(image)

    def extract_image(self, image: np.ndarray) -> ExtractionResult:
        height, width = image.shape[:2]
        regions = partition_quadrants(width, height)
        logger.info("Extracting readings from %dx%d image", width, height)

        results = empty_result()
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="quadrant") as pool:
            futures = {
                parameter: pool.submit(self._read_parameter, image, parameter, region)
                for parameter, region in regions.items()
            }
            for parameter, future in futures.items():
                try:
                    results[parameter.value] = future.result()
                except Exception:
                    logger.exception("Pipeline for %s failed", parameter.value)
                    results[parameter.value] = None

        logger.info("Extraction complete: %s", results)
        return results

    def _read_parameter(self, image: np.ndarray, parameter: Parameter, region: Region) -> Optional[str]:
        logger.info(
            "Processing %s quadrant: x=%d y=%d w=%d h=%d",
            parameter.value, region.left, region.top, region.width, region.height,
        )
        quadrant = crop_region(image, region)
        self._save_debug_image(quadrant, f"{parameter.value}_raw.png")

        variants = build_variants(
            quadrant,
            upscale=self._upscale,
            strategies=self._strategies,
            label=parameter.value,
        )
        candidates: List[Optional[Candidate]] = []
        for variant in variants:
            self._save_debug_image(variant.image, f"{parameter.value}_{variant.name}.png")
            try:
                observation = self._engine.recognize(
                    variant.image,
                    allowlist=self._allowlist,
                    page_mode=variant.page_mode,
                )
            except Exception as exc:
                logger.warning("OCR failed for %s (%s): %s", parameter.value, variant.name, exc)
                candidates.append(None)
                continue
            logger.info(
                "OCR %s (%s): %r (confidence: %.1f)",
                parameter.value, variant.name, observation.text, observation.confidence,
            )
            candidates.append(extract_candidate(observation, parameter, variant.name))

        best = select_candidate(candidates)
        if best is None:
            logger.warning("No reading found for %s", parameter.value)
            return None
        value = format_value(best.value)
        logger.info("%s: %s (variant %s, confidence %.1f)", parameter.value, value, best.variant, best.confidence)
        return value

    def _save_debug_image(self, image: np.ndarray, filename: str) -> None:
        """Save an intermediate image when debug output is enabled."""
        if not self._debug_dir or image.size == 0:
            return
        try:
            os.makedirs(self._debug_dir, exist_ok=True)
            path = os.path.join(self._debug_dir, filename)
            cv2.imwrite(path, image)
            logger.debug("Saved debug image: %s", path)
        except Exception as e:
            logger.warning("Failed to save debug image %s: %s", filename, e)


@lru_cache(maxsize=1)
def get_extractor() -> QuadrantExtractor:
    settings = get_settings()
    return QuadrantExtractor(
        get_ocr_service(),
        upscale=settings.ocr_upscale,
        max_workers=settings.ocr_max_workers,
        debug_dir=settings.ocr_debug_dir if settings.ocr_debug else None,
    )
