"""Configuration objects for the planning board."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, HttpUrl, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration sourced from ``FAIRWAY_*`` environment variables."""

    timezone: str = Field("Europe/Brussels", description="Operating civil timezone.")
    horizon_days: int = Field(365, description="How far ahead entries may be scheduled.")
    recurrence_window_days: int = Field(365, description="Span covered by one recurring series.")
    default_days_window: int = Field(14, description="Days kept in place from today by ensure-days.")
    weekday_language: Literal["fr", "en"] = Field("fr")
    store_url: Optional[HttpUrl] = Field(None, description="Base URL of the PostgREST/Supabase project.")
    store_key: Optional[SecretStr] = Field(None)
    request_timeout_seconds: float = Field(15.0)
    log_level: str = Field("INFO")

    model_config = SettingsConfigDict(
        env_prefix="FAIRWAY_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("horizon_days", "recurrence_window_days", "default_days_window")
    @classmethod
    def positive_window(cls, value: int) -> int:
        """Windows are counted in whole days and must move forward."""
        if value < 1:
            raise ValueError("day windows must be at least 1")
        return value

    @property
    def rest_endpoint(self) -> str:
        """Base REST endpoint of the relational store."""
        if self.store_url is None:
            raise ValueError("FAIRWAY_STORE_URL must be set to talk to the store")
        return f"{str(self.store_url).rstrip('/')}/rest/v1"
