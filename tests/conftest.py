"""Shared fixtures: a synthetic four-gauge panel and a fake OCR engine.

Each quadrant of the synthetic panel shows its reading as rendered digits,
inverted against whatever is under them so they stay visible on the bar.
The fake engine cannot read digits, so each quadrant is also coded by how
much of it is white (a bar covering 20/40/60/80% of the quadrant width);
the glyphs move that fraction by well under 1%. The engine maps the mean
brightness of whatever variant it receives back to the text the gauge would
show. Every preprocessing strategy keeps black as black and white as white,
so the code survives them all.
"""

from typing import Dict, Optional

import cv2
import numpy as np
import pytest

from aquapanel.core.config import get_settings
from aquapanel.services.ocr import OCRObservation, PageSegMode

PANEL_FILL = {
    "pH": 0.2,
    "temperature": 0.4,
    "dissolvedOxygen": 0.6,
    "salinity": 0.8,
}

PANEL_TEXT = {
    0.2: "7.4",
    0.4: "22.5",
    0.6: "8.1",
    0.8: "35",
}


def make_panel(width: int = 400, height: int = 400) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    half_w, half_h = width // 2, height // 2
    origins = {
        "pH": (0, 0),
        "temperature": (half_w, 0),
        "dissolvedOxygen": (0, half_h),
        "salinity": (half_w, half_h),
    }
    for name, (left, top) in origins.items():
        bar = int(round(half_w * PANEL_FILL[name]))
        image[top:top + half_h, left:left + bar] = 255
        glyphs = np.zeros((height, width), dtype=np.uint8)
        cv2.putText(
            glyphs,
            PANEL_TEXT[PANEL_FILL[name]],
            (left + 8, top + half_h - 12),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.8,
            255,
            2,
        )
        drawn = glyphs > 0
        image[drawn] = 255 - image[drawn]
    return image


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


class FakeEngine:
    """Returns the text for the nearest fill level, or raises for chosen ones."""

    def __init__(
        self,
        confidences: Optional[Dict[PageSegMode, float]] = None,
        fail_on: Optional[float] = None,
    ) -> None:
        self.confidences = confidences or {PageSegMode.BLOCK: 70.0, PageSegMode.SINGLE_WORD: 80.0}
        self.fail_on = fail_on
        self.calls = []

    def recognize(self, image, *, allowlist, page_mode):
        fill = min(PANEL_TEXT, key=lambda level: abs(level - float(image.mean()) / 255.0))
        self.calls.append((fill, page_mode, allowlist))
        if self.fail_on is not None and fill == self.fail_on:
            raise RuntimeError("engine crashed")
        return OCRObservation(text=PANEL_TEXT[fill], confidence=self.confidences[page_mode])


@pytest.fixture
def panel_image() -> np.ndarray:
    return make_panel()


@pytest.fixture
def panel_bytes(panel_image) -> bytes:
    return encode_png(panel_image)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
