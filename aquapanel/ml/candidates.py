from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from aquapanel.ml.quadrants import PARAMETER_RANGES, Parameter
from aquapanel.services.ocr import OCRObservation


logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^\d.\s-]")
_NUMBER_TOKEN = re.compile(r"-?\d+\.?\d*")


@dataclass(frozen=True)
class Candidate:
    """A number read from one variant of one quadrant."""
    parameter: Parameter
    value: float
    confidence: float
    variant: str = ""


def clean_text(text: str) -> str:
    """Blank out everything that cannot be part of a reading."""
    return _NON_NUMERIC.sub(" ", text or "").strip()


def scan_numbers(text: str) -> List[float]:
    """All signed decimal numbers in ``text``, in reading order."""
    values: List[float] = []
    for token in _NUMBER_TOKEN.findall(clean_text(text)):
        try:
            values.append(float(token))
        except ValueError:
            continue
    return values


def in_range(parameter: Parameter, value: float) -> bool:
    low, high = PARAMETER_RANGES[parameter]
    return low <= value <= high


def pick_value(parameter: Parameter, values: Iterable[float]) -> Optional[float]:
    """
    First value inside the parameter's plausible range, else the first value.

    Returns None when there is nothing to pick. An out-of-range read is kept
    as a best guess rather than dropped.
    """
    values = list(values)
    if not values:
        return None
    for value in values:
        if in_range(parameter, value):
            return value
    return values[0]


def extract_candidate(
    observation: OCRObservation,
    parameter: Parameter,
    variant: str = "",
) -> Optional[Candidate]:
    """Turn one OCR observation into a candidate, or None if it holds no number."""
    values = scan_numbers(observation.text)
    value = pick_value(parameter, values)
    if value is None:
        logger.info("No numbers in OCR text for %s (%s): %r", parameter.value, variant, observation.text)
        return None
    logger.info(
        "Numbers for %s (%s): %s -> %s (confidence %.1f)",
        parameter.value, variant, values, value, observation.confidence,
    )
    return Candidate(parameter=parameter, value=value, confidence=observation.confidence, variant=variant)


def select_candidate(candidates: Iterable[Optional[Candidate]]) -> Optional[Candidate]:
    """
    Highest-confidence candidate across variants.

    Variants that produced nothing are skipped. Equal confidence keeps the
    earlier variant, so the result only depends on variant order.
    """
    best: Optional[Candidate] = None
    for candidate in candidates:
        if candidate is None:
            continue
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best


def format_value(value: Optional[float]) -> Optional[str]:
    """Two-decimal string; None stays None so a missed read never looks like 0."""
    if value is None:
        return None
    # + 0.0 folds -0.0 into 0.0
    return f"{value + 0.0:.2f}"
