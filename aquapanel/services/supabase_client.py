from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from supabase import Client, create_client

from aquapanel.core.config import Settings


@dataclass(frozen=True)
class SupabaseConfig:
    """Connection details for the readings store, built once at startup."""
    url: str
    service_key: str
    readings_table: str = "unit_readings"

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SupabaseConfig"]:
        if not settings.supabase_configured:
            return None
        return cls(
            url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            readings_table=(settings.supabase_readings_table or "unit_readings").strip(),
        )


def create_supabase_client(config: SupabaseConfig) -> Client:
    return create_client(config.url, config.service_key)
