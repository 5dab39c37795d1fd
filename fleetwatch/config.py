"""
FleetWatch configuration.

Nothing is required at startup: detection thresholds all have defaults, and
integration vars (Coltrack, Fagor, Supabase) are validated lazily when the
component that needs them is first built, via validate_for().

Detection behaviour is handed to the engine as an explicit, immutable
EngineConfig (see Settings.engine_config()) so that the same thresholds can
be injected in tests without touching the environment.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fleetwatch.models.alert import AlertType

# Maps each component to the settings fields it requires.
_COMPONENT_REQUIRED_FIELDS: dict[str, list[str]] = {
    "coltrack": [
        "coltrack_api_url",
        "coltrack_user",
        "coltrack_password",
    ],
    "fagor": [
        "fagor_api_url",
        "fagor_user",
        "fagor_password",
        "fagor_company",
    ],
    "store": [
        "supabase_url",
        "supabase_service_role_key",
    ],
}

_KNOWN_COMPONENTS = set(_COMPONENT_REQUIRED_FIELDS.keys())

DEFAULT_DEDUP_WINDOWS_MINUTES: dict[AlertType, int] = {
    AlertType.SPEED_VIOLATION: 15,
    AlertType.HARSH_BRAKING: 10,
    AlertType.HARSH_ACCELERATION: 10,
    AlertType.PANIC_BUTTON: 60,
    AlertType.COLLISION: 24 * 60,
}

# Re-exported by agents.critical; EngineConfig validates against it.
CRITICAL_TYPES: frozenset[AlertType] = frozenset({AlertType.PANIC_BUTTON, AlertType.COLLISION})


class EngineConfig(BaseModel):
    """Detection and deduplication parameters for one AlertMonitor."""

    model_config = ConfigDict(frozen=True)

    speed_threshold_kmh: float = Field(default=80.0, gt=0)
    dedup_windows_minutes: dict[AlertType, int] = Field(
        default_factory=lambda: dict(DEFAULT_DEDUP_WINDOWS_MINUTES)
    )
    default_dedup_window_minutes: int = Field(default=15, ge=0)
    critical_lookback_hours: float = Field(default=24.0, gt=0)
    source_timeout_seconds: float = Field(default=20.0, gt=0)

    def window_for(self, alert_type: AlertType) -> timedelta:
        minutes = self.dedup_windows_minutes.get(alert_type, self.default_dedup_window_minutes)
        return timedelta(minutes=minutes)

    @property
    def critical_lookback(self) -> timedelta:
        return timedelta(hours=self.critical_lookback_hours)

    @model_validator(mode="after")
    def _critical_never_more_lenient(self) -> EngineConfig:
        for alert_type in CRITICAL_TYPES:
            if self.critical_lookback < self.window_for(alert_type):
                raise ValueError(
                    f"critical_lookback_hours ({self.critical_lookback_hours}) is shorter than "
                    f"the dedup window for '{alert_type.value}' "
                    f"({self.window_for(alert_type)}); critical types may not be more lenient "
                    f"than ordinary deduplication"
                )
        return self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    speed_threshold_kmh: float = 80.0
    dedup_windows_minutes: dict[AlertType, int] = Field(
        default_factory=lambda: dict(DEFAULT_DEDUP_WINDOWS_MINUTES)
    )  # JSON in env, e.g. DEDUP_WINDOWS_MINUTES='{"Speed Violation": 20}'; merged onto the defaults
    default_dedup_window_minutes: int = 15
    critical_lookback_hours: float = 24.0
    poll_interval_minutes: float = 5.0
    source_timeout_seconds: float = 20.0

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------
    resolved_retention_days: int = 7
    max_active_alerts: int = 500

    # ------------------------------------------------------------------
    # Optional integrations, validated lazily per component
    # ------------------------------------------------------------------

    # Coltrack (JSON over HTTP, Basic auth)
    coltrack_api_url: Optional[str] = "https://gps.coltrack.com/gps/api.jsp"
    coltrack_user: Optional[str] = None
    coltrack_password: Optional[str] = None

    # Fagor / FlotasNet (SOAP)
    fagor_api_url: Optional[str] = "https://www.flotasnet.com/servicios/EstadoVehiculo.asmx"
    fagor_user: Optional[str] = None
    fagor_password: Optional[str] = None
    fagor_company: Optional[str] = None

    # Supabase (PostgREST) alert store
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_alerts_table: str = "saved_alerts"

    @field_validator("dedup_windows_minutes", mode="after")
    @classmethod
    def _merge_window_defaults(cls, value: dict[AlertType, int]) -> dict[AlertType, int]:
        return {**DEFAULT_DEDUP_WINDOWS_MINUTES, **value}

    def engine_config(self) -> EngineConfig:
        """Build the immutable EngineConfig handed to AlertMonitor."""
        return EngineConfig(
            speed_threshold_kmh=self.speed_threshold_kmh,
            dedup_windows_minutes=self.dedup_windows_minutes,
            default_dedup_window_minutes=self.default_dedup_window_minutes,
            critical_lookback_hours=self.critical_lookback_hours,
            source_timeout_seconds=self.source_timeout_seconds,
        )

    def validate_for(self, component: str) -> None:
        """Assert that all settings required by *component* are present.

        Raises:
            ValueError: If *component* is not a recognised component.
            RuntimeError: If one or more required settings are absent.
        """
        if component not in _KNOWN_COMPONENTS:
            raise ValueError(
                f"Unknown component '{component}'. "
                f"Known components: {', '.join(sorted(_KNOWN_COMPONENTS))}"
            )

        required = _COMPONENT_REQUIRED_FIELDS[component]
        missing = [
            field for field in required if not getattr(self, field, None)
        ]

        if missing:
            missing_vars = ", ".join(m.upper() for m in missing)
            raise RuntimeError(
                f"Component '{component}' cannot start: "
                f"missing required environment variables: {missing_vars}. "
                f"Set these in your .env file (see .env.example)."
            )


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    In tests, clear the cache with get_settings.cache_clear() after
    patching environment variables, or instantiate Settings() directly
    with _env_file=None to avoid reading the .env file.
    """
    return Settings()
