"""Data models for the SolarTwin pipeline."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models sent to the browser (camelCase JSON keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlertLevel(str, Enum):
    """Alert classification band."""

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class CleaningStatus(str, Enum):
    """Stage of a cleaning cycle."""

    TRIGGERED = "triggered"
    COMPLETED = "completed"


class PanelAttributes(WireModel):
    """Static attributes of the simulated panel, shared by every reading."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    panel_id: str
    rated_kw: float = Field(ge=0)
    efficiency: float = Field(ge=0, le=1)
    area_m2: float = Field(ge=0)


class TelemetryReading(WireModel):
    """Single synthetic sensor reading."""

    timestamp: int  # ms since epoch
    energy_kw: float = Field(ge=0)
    panel: PanelAttributes


class WeatherSnapshot(WireModel):
    """Instantaneous weather conditions."""

    temperature_c: float
    humidity: float = Field(ge=0, le=100)
    cloud_cover: float = Field(ge=0, le=1)
    sunlight_ratio: float = Field(ge=0, le=1)


class HourlyWeather(BaseModel):
    """Weather snapshot for one forecast hour."""

    timestamp: int  # ms since epoch
    snapshot: WeatherSnapshot


class Prediction(WireModel):
    """Expected panel output for given weather."""

    energy_kw: float = Field(ge=0)


class AlertEvaluation(WireModel):
    """Result of classifying a deviation ratio."""

    level: AlertLevel
    message: str
    ratio: float = Field(ge=0)
    should_clean: bool


class TelemetryMessage(WireModel):
    """Joined view of one tick: actual vs predicted output plus context."""

    timestamp: int
    actual_kw: float = Field(ge=0)
    predicted_kw: float = Field(ge=0)
    weather: WeatherSnapshot
    ratio: float = Field(ge=0)
    alert: AlertEvaluation | None = None


class TelemetryEnvelope(WireModel):
    """Unit pushed over the live channel."""

    type: Literal["telemetry"] = "telemetry"
    data: TelemetryMessage


class CleaningResult(WireModel):
    """Outcome of a cleaning request."""

    started_at: int  # ms since epoch
    status: CleaningStatus
    duration_sec: float = Field(ge=0)


class ForecastPoint(WireModel):
    """Predicted output at a point of the resampled forecast series."""

    t: int  # ms since epoch
    predicted: float = Field(ge=0)
