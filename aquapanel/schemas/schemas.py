from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PanelReadings(BaseModel):
    """Two-decimal readings; null means nothing plausible was read."""

    model_config = ConfigDict(populate_by_name=True, validate_by_name=True)
    ph: Optional[str] = Field(None, alias="pH")
    temperature: Optional[str] = None
    dissolved_oxygen: Optional[str] = Field(None, alias="dissolvedOxygen")
    salinity: Optional[str] = None

    @classmethod
    def from_result(cls, result: Dict[str, Optional[str]]) -> "PanelReadings":
        return cls.model_validate(result)


class PanelReadingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_by_name=True)
    unit_id: str = Field(..., alias="unitId")
    readings: PanelReadings
    saved: bool
    timestamp: Optional[datetime] = None
