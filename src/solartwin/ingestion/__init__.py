"""Telemetry simulation and weather ingestion."""

from solartwin.ingestion.telemetry import TelemetryGenerator
from solartwin.ingestion.weather import (
    FALLBACK_WEATHER,
    OpenMeteoWeatherSource,
    SyntheticWeatherSource,
    WeatherClient,
    WeatherSource,
)

__all__ = [
    "FALLBACK_WEATHER",
    "OpenMeteoWeatherSource",
    "SyntheticWeatherSource",
    "TelemetryGenerator",
    "WeatherClient",
    "WeatherSource",
]
