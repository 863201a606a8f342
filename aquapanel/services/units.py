import re
from pathlib import Path

DEFAULT_UNIT_ID = "unit_1"

_UNIT_PATTERN = re.compile(r"unit[_\s]*(\d+)", re.IGNORECASE)


def resolve_unit_id(filename: str) -> str:
    """
    Derive the unit a capture belongs to from its filename.

        unit_3_20250105_143022.jpg -> unit_3
        tank_7.png                 -> tank_7
        capture-Unit12.jpg         -> unit_12
        photo.jpg                  -> unit_1
    """
    stem = Path(filename or "").stem
    parts = stem.split("_")
    if len(parts) >= 2 and parts[0] and parts[1]:
        return f"{parts[0]}_{parts[1]}"

    match = _UNIT_PATTERN.search(stem)
    if match:
        return f"unit_{match.group(1)}"
    return DEFAULT_UNIT_ID
