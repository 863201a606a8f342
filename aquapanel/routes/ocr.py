from __future__ import annotations

import logging
from typing import Optional

import cv2
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from aquapanel.core.errors import InvalidImageError, PersistenceError
from aquapanel.ml.inference import QuadrantExtractor, get_extractor
from aquapanel.ml.preprocessing import decode_image
from aquapanel.ml.quadrants import partition_quadrants
from aquapanel.schemas.schemas import PanelReadingResponse, PanelReadings
from aquapanel.services.readings import UnitReadingStore, get_reading_store
from aquapanel.services.units import resolve_unit_id

router = APIRouter()
logger = logging.getLogger(__name__)


def reading_store() -> Optional[UnitReadingStore]:
    """Store dependency; None when Supabase is not configured."""
    try:
        return get_reading_store()
    except PersistenceError as exc:
        logger.warning("Readings store unavailable: %s", exc)
        return None


async def _read_upload(file: UploadFile) -> bytes:
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are supported")
    payload = await file.read()
    logger.info(
        "Panel upload received: filename=%s content_type=%s size=%s bytes",
        file.filename,
        file.content_type,
        len(payload),
    )
    return payload


@router.post("/panel", response_model=PanelReadingResponse)
async def read_panel(
    file: UploadFile = File(...),
    unit_id: Optional[str] = Form(None),
    persist: bool = Form(True),
    extractor: QuadrantExtractor = Depends(get_extractor),
    store: Optional[UnitReadingStore] = Depends(reading_store),
) -> PanelReadingResponse:
    payload = await _read_upload(file)
    unit = (unit_id or "").strip() or resolve_unit_id(file.filename or "")

    try:
        parsed = await run_in_threadpool(extractor.extract, payload)
    except InvalidImageError as exc:
        logger.exception("Panel decoding failed")
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info("Panel readings for %s: %s", unit, parsed)
    response = PanelReadingResponse(
        unit_id=unit,
        readings=PanelReadings.from_result(parsed),
        saved=False,
    )
    if not persist:
        return response

    if store is None:
        raise HTTPException(status_code=503, detail="Readings store is not configured")
    try:
        record = await run_in_threadpool(store.save, unit, parsed)
    except PersistenceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    response.saved = True
    response.timestamp = record.timestamp
    return response


@router.post("/debug-regions", response_class=Response)
async def debug_regions(file: UploadFile = File(...)) -> Response:
    """
    Debug endpoint: returns the image with the four quadrants drawn on it.
    Use this to check a camera is framed so each gauge sits in its quadrant.
    """
    payload = await _read_upload(file)
    try:
        image = decode_image(payload)
    except InvalidImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    height, width = image.shape[:2]
    for parameter, region in partition_quadrants(width, height).items():
        cv2.rectangle(
            image,
            (region.left, region.top),
            (region.right - 1, region.bottom - 1),
            (0, 255, 0),  # Green
            2,
        )
        cv2.putText(
            image,
            parameter.value,
            (region.left + 8, region.top + 24),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            (0, 0, 255),  # Red text
            2,
        )

    _, buffer = cv2.imencode(".png", image)
    return Response(content=buffer.tobytes(), media_type="image/png")
