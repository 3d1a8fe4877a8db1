"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="HAULPLAN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Haulplan Scheduling API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app().")
    data_root: Path = Field(default=Path("data"), description="Root directory for stored route plans.")
    business_timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone in which recurrence times (HH:MM) and route days are interpreted.",
    )

    # Routing / geo providers
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key used for the geocoding and weather endpoints.",
    )
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    weather_url: str = "https://weather.googleapis.com/v1/forecast/hours:lookup"
    provider_language: str = "pt-BR"
    http_timeout_seconds: float = Field(default=10.0, gt=0.0)
    http_max_retries: int = Field(default=1, ge=0, le=1)
    http_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Document store
    document_backend: Literal["memory", "supabase"] = "memory"
    transaction_max_attempts: int = Field(default=25, ge=1)
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    # Route planning
    round_trip_factor: float = Field(default=2.0, ge=1.0)
    fallback_speed_kmh: float = Field(
        default=40.0,
        gt=0.0,
        description="Average speed used to estimate a leg when the directions provider fails.",
    )
    default_service_minutes: int = Field(default=30, ge=0)
    turnaround_buffer_minutes: int = Field(default=5, ge=0)
    departure_safety_margin_minutes: int = Field(default=15, ge=0)
    delivery_hour: int = Field(default=8, ge=0, le=23)
    pickup_hour: int = Field(default=17, ge=0, le=23)
    default_departure_time: str = Field(default="08:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")

    # Outbound collaborators
    notification_webhook_url: Optional[str] = None
    calendar_webhook_url: Optional[str] = None

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=("http://localhost:3000", "http://127.0.0.1:3000"),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
