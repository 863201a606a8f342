import logging

from fastapi import FastAPI

from aquapanel.core.config import get_settings
from aquapanel.routes.ocr import router as ocr_router

settings = get_settings()

logging.basicConfig(
	level=settings.log_level,
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Aquapanel Reader")


@app.get("/health", tags=["health"])
def health_check() -> dict:
	return {"status": "ok"}


def get_app() -> FastAPI:
	"""Convenience accessor if you need the app instance elsewhere."""
	return app


app.include_router(ocr_router, prefix="/ocr", tags=["ocr"])
