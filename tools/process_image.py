from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence

from aquapanel.core.config import get_settings
from aquapanel.core.errors import InvalidImageError, PersistenceError
from aquapanel.ml.inference import QuadrantExtractor, get_extractor
from aquapanel.services.readings import UnitReadingStore, get_reading_store
from aquapanel.services.units import resolve_unit_id

logger = logging.getLogger("aquapanel.tools.process_image")

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".tiff", ".bmp"}


def process_file(
    path: Path,
    extractor: QuadrantExtractor,
    store: Optional[UnitReadingStore],
    unit_id: Optional[str] = None,
) -> bool:
    """Read one panel photo and store its readings. Returns False on failure."""
    if not path.is_file():
        logger.error("Image file not found: %s", path)
        return False
    if path.suffix.lower() not in IMAGE_SUFFIXES:
        logger.warning("Unexpected image extension for %s; trying anyway", path)

    unit = unit_id or resolve_unit_id(path.name)
    started = time.monotonic()
    logger.info("Processing %s (unit %s)", path, unit)
    try:
        payload = path.read_bytes()
    except OSError as exc:
        logger.error("Failed to read %s: %s", path, exc)
        return False
    try:
        readings = extractor.extract(payload)
    except InvalidImageError as exc:
        logger.error("Failed to process %s: %s", path, exc)
        return False

    if store is not None:
        try:
            store.save(unit, readings)
        except PersistenceError as exc:
            logger.error("Failed to store readings for %s: %s", unit, exc)
            return False

    elapsed = time.monotonic() - started
    print(f"{path}: {unit} {_format_readings(readings)} ({elapsed:.2f}s)")
    return True


def _format_readings(readings) -> str:
    return " ".join(f"{name}={value if value is not None else 'n/a'}" for name, value in readings.items())


def run(
    paths: Sequence[Path],
    unit_id: Optional[str] = None,
    dry_run: bool = False,
    extractor: Optional[QuadrantExtractor] = None,
    store: Optional[UnitReadingStore] = None,
) -> int:
    extractor = extractor or get_extractor()
    if not dry_run and store is None:
        store = get_reading_store()

    succeeded: List[Path] = []
    failed: List[Path] = []
    for path in paths:
        if process_file(path, extractor, None if dry_run else store, unit_id):
            succeeded.append(path)
        else:
            failed.append(path)

    print(f"Total files: {len(paths)}")
    print(f"Successfully processed: {len(succeeded)}")
    print(f"Failed: {len(failed)}")
    return 1 if failed else 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Read panel photos and store the readings in Supabase")
    parser.add_argument("images", nargs="+", type=Path, help="Panel photos to process")
    parser.add_argument(
        "--unit-id",
        default=None,
        help="Unit to record against (default: derived from each filename)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Extract and print readings without writing to Supabase",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(args.images, unit_id=args.unit_id, dry_run=args.dry_run)
    except PersistenceError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
