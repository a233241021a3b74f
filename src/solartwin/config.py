"""Runtime configuration read from environment variables."""

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, model_validator

# Environment variable -> Settings field
ENV_VARS = {
    "ALERT_THRESHOLD": "alert_threshold",
    "RATED_KW": "rated_kw",
    "PANEL_ID": "panel_id",
    "PANEL_EFFICIENCY": "panel_efficiency",
    "PANEL_AREA_M2": "panel_area_m2",
    "TICK_INTERVAL_S": "tick_interval_s",
    "TIME_COMPRESSION": "time_compression",
    "WEATHER_LAT": "weather_lat",
    "WEATHER_LON": "weather_lon",
    "WEATHER_TIMEOUT_S": "weather_timeout_s",
    "CLEANING_DURATION_S": "cleaning_duration_s",
    "TS_WRITE_KEY": "thingspeak_write_key",
    "TS_BASE_URL": "thingspeak_base_url",
    "TS_MIN_INTERVAL_S": "thingspeak_min_interval_s",
    "TS_TIMEOUT_S": "thingspeak_timeout_s",
    "HOST": "host",
    "PORT": "port",
}


class Settings(BaseModel):
    """Tunable parameters of the pipeline and the server."""

    alert_threshold: float = Field(default=0.2, gt=0)
    rated_kw: float = Field(default=5.0, ge=0)
    panel_id: str = "DEMO-001"
    panel_efficiency: float = Field(default=0.18, ge=0, le=1)
    panel_area_m2: float = Field(default=27.5, ge=0)

    # 600s ticks with 6x compression: one simulated hour per tick
    tick_interval_s: float = Field(default=600.0, gt=0)
    time_compression: float = Field(default=6.0, gt=0)

    weather_lat: float | None = Field(default=None, ge=-90, le=90)
    weather_lon: float | None = Field(default=None, ge=-180, le=180)
    weather_timeout_s: float = Field(default=5.0, gt=0)

    cleaning_duration_s: float = Field(default=3.0, ge=0)

    thingspeak_write_key: str | None = None
    thingspeak_base_url: str = "https://api.thingspeak.com"
    thingspeak_min_interval_s: float = Field(default=16.0, ge=0)
    thingspeak_timeout_s: float = Field(default=8.0, gt=0)

    host: str = "0.0.0.0"
    port: int = Field(default=4000, gt=0, lt=65536)

    @model_validator(mode="after")
    def _coordinates_come_in_pairs(self) -> "Settings":
        if (self.weather_lat is None) != (self.weather_lon is None):
            raise ValueError("WEATHER_LAT and WEATHER_LON must be set together")
        return self

    @property
    def uses_external_weather(self) -> bool:
        return self.weather_lat is not None and self.weather_lon is not None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables, ignoring empty values."""
        env = os.environ if environ is None else environ
        values = {
            field: env[var] for var, field in ENV_VARS.items() if env.get(var, "").strip()
        }
        return cls.model_validate(values)
