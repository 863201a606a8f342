from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

import numpy as np

from aquapanel.core.errors import InvalidImageError


class Parameter(str, Enum):
    """Sensor readings shown on the panel, one per quadrant."""

    PH = "pH"
    TEMPERATURE = "temperature"
    DISSOLVED_OXYGEN = "dissolvedOxygen"
    SALINITY = "salinity"


# Plausible reading ranges. Used to prefer a token, never to reject one.
PARAMETER_RANGES: Dict[Parameter, Tuple[float, float]] = {
    Parameter.PH: (0.0, 14.0),
    Parameter.TEMPERATURE: (-10.0, 60.0),   # degC
    Parameter.DISSOLVED_OXYGEN: (0.0, 25.0),  # mg/L
    Parameter.SALINITY: (0.0, 50.0),        # ppt
}


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle inside the source image, in pixels."""
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height


def partition_quadrants(width: int, height: int) -> Dict[Parameter, Region]:
    """
    Split a width x height image into its four fixed quadrants.

    Layout on the panel (cartesian quadrants):
        top-left     -> pH
        top-right    -> temperature
        bottom-left  -> dissolved oxygen
        bottom-right -> salinity

    Odd dimensions lose their last column/row to floor division.
    """
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Invalid image dimensions: {width}x{height}")

    half_w = width // 2
    half_h = height // 2
    return {
        Parameter.PH: Region(left=0, top=0, width=half_w, height=half_h),
        Parameter.TEMPERATURE: Region(left=half_w, top=0, width=half_w, height=half_h),
        Parameter.DISSOLVED_OXYGEN: Region(left=0, top=half_h, width=half_w, height=half_h),
        Parameter.SALINITY: Region(left=half_w, top=half_h, width=half_w, height=half_h),
    }


def crop_region(image: np.ndarray, region: Region) -> np.ndarray:
    return image[region.top:region.bottom, region.left:region.right]
