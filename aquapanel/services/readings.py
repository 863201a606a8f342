from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Mapping, Optional

from aquapanel.core.config import get_settings
from aquapanel.core.errors import PersistenceError
from aquapanel.ml.quadrants import Parameter
from aquapanel.services.supabase_client import SupabaseConfig, create_supabase_client

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")

# Panel parameter -> readings table column
COLUMN_MAP = {
    Parameter.PH: "ph",
    Parameter.TEMPERATURE: "temperature",
    Parameter.DISSOLVED_OXYGEN: "dissolved_oxygen",
    Parameter.SALINITY: "salinity",
}


@dataclass
class UnitRecord:
    unit_id: str
    readings: Dict[str, Optional[str]]
    timestamp: datetime

    def as_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {"unit_id": self.unit_id}
        for parameter, column in COLUMN_MAP.items():
            value = self.readings.get(parameter.value)
            # Sent as the two-decimal string; the numeric(8,2) column keeps the scale
            row[column] = value
        row["last_updated"] = self.timestamp.isoformat()
        return row


class UnitReadingStore:
    """Upserts the latest panel readings for a unit into Supabase.

    Rows are keyed by ``unit_id``; every save overwrites all four reading
    columns. ``processed_at`` is stamped by the database.
    """

    def __init__(self, client, table: str = "unit_readings") -> None:
        self._client = client
        self._table = table

    def save(self, unit_id: str, readings: Mapping[str, Optional[str]]) -> UnitRecord:
        if not unit_id:
            raise PersistenceError("A unit id is required to store readings")

        record = UnitRecord(
            unit_id=unit_id,
            readings={parameter.value: readings.get(parameter.value) for parameter in Parameter},
            timestamp=datetime.now(timezone.utc),
        )
        row = record.as_row()
        logger.info("Updating %s for %s: %s", self._table, unit_id, row)

        try:
            response = self._client.table(self._table).upsert(row, on_conflict="unit_id").execute()
        except Exception as exc:
            logger.exception("Failed to persist readings for %s", unit_id)
            raise PersistenceError(f"Failed to store readings for {unit_id}") from exc
        if getattr(response, "error", None):
            raise PersistenceError(str(response.error))

        data = getattr(response, "data", None) or []
        server_time = data[0].get("processed_at") if data else None
        if server_time:
            record.timestamp = _parse_timestamp(server_time, record.timestamp)
        logger.info("Readings stored for %s at %s", unit_id, record.timestamp.isoformat())
        return record


def _parse_timestamp(value, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(_normalize_fraction(str(value).replace("Z", "+00:00")))
    except ValueError:
        logger.warning("Unparseable processed_at from store: %r", value)
        return fallback


def _normalize_fraction(value: str) -> str:
    """Pad or cut seconds fractions to six digits; Postgres trims trailing zeros."""
    return _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)


@lru_cache(maxsize=1)
def get_reading_store() -> UnitReadingStore:
    """Return the cached store. Raises PersistenceError if Supabase is not configured."""
    config = SupabaseConfig.from_settings(get_settings())
    if config is None:
        raise PersistenceError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in the environment")
    return UnitReadingStore(create_supabase_client(config), config.readings_table)
