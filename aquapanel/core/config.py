import os
from functools import lru_cache


def _env_flag(name: str, default: str = "") -> bool:
	return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
	"""Simple settings loader that reads from environment variables.

	Kept as a plain class to avoid extra dependencies like pydantic-settings.
	"""

	def __init__(self) -> None:
		# Supabase
		self.supabase_url: str = os.getenv("SUPABASE_URL", "")
		self.supabase_service_key: str = os.getenv("SUPABASE_SERVICE_KEY", "")
		self.supabase_readings_table: str = os.getenv("SUPABASE_READINGS_TABLE", "unit_readings")

		# OCR
		self.ocr_engine: str = os.getenv("OCR_ENGINE", "easyocr").strip().lower()
		self.ocr_language: str = os.getenv("OCR_LANGUAGE", "en")
		self.ocr_gpu: bool = _env_flag("OCR_GPU")
		self.ocr_upscale: int = max(1, int(os.getenv("OCR_UPSCALE", "2")))
		self.ocr_max_workers: int = max(1, int(os.getenv("OCR_MAX_WORKERS", "4")))
		self.tesseract_cmd: str = os.getenv("TESSERACT_CMD", "")

		# Intermediate images for diagnosing bad reads
		self.ocr_debug: bool = _env_flag("OCR_DEBUG")
		self.ocr_debug_dir: str = os.getenv("OCR_DEBUG_DIR", "./ocr_debug")

		# FastAPI app
		self.app_host: str = os.getenv("APP_HOST", "127.0.0.1")
		self.app_port: int = int(os.getenv("APP_PORT", "8000"))
		self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

	@property
	def supabase_configured(self) -> bool:
		return bool(self.supabase_url and self.supabase_service_key)


@lru_cache()
def get_settings() -> Settings:
	"""Return a cached Settings instance so we only read env once."""
	return Settings()
