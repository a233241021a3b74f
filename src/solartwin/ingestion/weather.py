"""Weather snapshots: synthetic diurnal model or Open-Meteo API (free, no key required)."""

import asyncio
import math
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

import httpx
import structlog

from solartwin.models import HourlyWeather, WeatherSnapshot

log = structlog.get_logger()

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_VARIABLES = "temperature_2m,relative_humidity_2m,cloud_cover,shortwave_radiation"
HOURLY_VARIABLES = "temperature_2m,relative_humidity_2m,cloud_cover,uv_index"

# Clear-sky reference irradiance used to normalize shortwave radiation (W/m^2)
CLEAR_SKY_IRRADIANCE = 1000.0
# UV index treated as full sun
FULL_SUN_UV_INDEX = 8.0

# Neutral conditions returned when the external provider is unavailable
FALLBACK_WEATHER = WeatherSnapshot(
    temperature_c=25.0,
    humidity=60.0,
    cloud_cover=0.5,
    sunlight_ratio=0.5,
)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def validate_coordinates(lat: float, lon: float) -> None:
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("lat and lon must be finite numbers")
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError(f"Coordinates out of range: lat={lat}, lon={lon}")


class WeatherSource(Protocol):
    async def get_current_weather(self) -> WeatherSnapshot: ...


class SyntheticWeatherSource:
    """Deterministic weather as a function of wall-clock time.

    Temperature rides a day/night base plus a slow carrier, cloud cover and
    humidity oscillate on their own periods, and the sunlight ratio is the
    diurnal factor reduced by cloud cover.
    """

    def __init__(
        self,
        time_compression: float = 360.0,
        origin: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.time_compression = time_compression
        self.origin = origin
        self._clock = clock

    def snapshot_at(self, seconds: float) -> WeatherSnapshot:
        """Weather `seconds` after the origin."""
        hour = (seconds * self.time_compression / 3600) % 24
        diurnal = max(0.0, math.sin(((hour - 6) / 12) * math.pi))

        temperature_c = 20 + 12 * diurnal + 2 * math.sin(seconds / 300)
        cloud_cover = _clamp(0.3 + 0.3 * math.sin(seconds / 200))
        humidity = 50 + 20 * math.sin(seconds / 180)
        sunlight_ratio = diurnal * (1 - 0.6 * cloud_cover)

        return WeatherSnapshot(
            temperature_c=temperature_c,
            humidity=humidity,
            cloud_cover=cloud_cover,
            sunlight_ratio=sunlight_ratio,
        )

    async def get_current_weather(self) -> WeatherSnapshot:
        return self.snapshot_at(self._clock() - self.origin)


class WeatherClient:
    """Async client for current and hourly conditions from the Open-Meteo API."""

    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_current(self, lat: float, lon: float) -> WeatherSnapshot:
        """Fetch current conditions.

        Raises:
            httpx.HTTPError: transport failure or non-2xx response
            ValueError: bad coordinates or malformed payload
        """
        validate_coordinates(lat, lon)
        params: dict[str, str | float] = {
            "latitude": lat,
            "longitude": lon,
            "current": CURRENT_VARIABLES,
        }

        response = await self._client.get(OPEN_METEO_FORECAST_URL, params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected Open-Meteo payload")

        current = data.get("current") or {}
        if not current:
            raise ValueError("Open-Meteo response has no current conditions")

        log.info("weather_fetched", latitude=lat, longitude=lon)
        return self._parse_current(current)

    def _parse_current(self, current: dict) -> WeatherSnapshot:  # type: ignore[type-arg]
        try:
            cloud_cover = _clamp(float(current.get("cloud_cover", 50)) / 100)
            radiation = float(current.get("shortwave_radiation", 0.0))
            return WeatherSnapshot(
                temperature_c=float(current["temperature_2m"]),
                humidity=_clamp(float(current["relative_humidity_2m"]), 0, 100),
                cloud_cover=cloud_cover,
                sunlight_ratio=_clamp(radiation / CLEAR_SKY_IRRADIANCE),
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError(f"Malformed current conditions: {e}") from e

    async def fetch_hourly(self, lat: float, lon: float, days: int = 2) -> list[HourlyWeather]:
        """Fetch hourly conditions (UTC) for today and the following days."""
        validate_coordinates(lat, lon)
        params: dict[str, str | float] = {
            "latitude": lat,
            "longitude": lon,
            "hourly": HOURLY_VARIABLES,
            "forecast_days": days,
            "timezone": "GMT",
        }

        response = await self._client.get(OPEN_METEO_FORECAST_URL, params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected Open-Meteo payload")

        records = self._parse_hourly(data)
        log.info("hourly_weather_fetched", latitude=lat, longitude=lon, record_count=len(records))
        return records

    def _parse_hourly(self, data: dict) -> list[HourlyWeather]:  # type: ignore[type-arg]
        hourly = data.get("hourly", {})
        times = hourly.get("time", [])

        records = []
        for i, time_str in enumerate(times):
            try:
                ts = datetime.fromisoformat(time_str).replace(tzinfo=timezone.utc)
                cloud_cover = _clamp(float(hourly["cloud_cover"][i] or 0) / 100)
                uv_index = hourly.get("uv_index", [None] * len(times))[i]
                if uv_index is None:
                    sunlight_ratio = 1 - cloud_cover
                else:
                    sunlight_ratio = _clamp(float(uv_index) / FULL_SUN_UV_INDEX)

                snapshot = WeatherSnapshot(
                    temperature_c=float(hourly["temperature_2m"][i]),
                    humidity=_clamp(float(hourly["relative_humidity_2m"][i]), 0, 100),
                    cloud_cover=cloud_cover,
                    sunlight_ratio=sunlight_ratio,
                )
                records.append(HourlyWeather(timestamp=int(ts.timestamp() * 1000), snapshot=snapshot))
            except (KeyError, IndexError, TypeError, ValueError) as e:
                log.warning("parse_error", index=i, error=str(e))
                continue

        return records

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "WeatherClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


class OpenMeteoWeatherSource:
    """Pipeline-facing weather for a fixed location.

    Bounded by `timeout_s` and never raises: any failure yields FALLBACK_WEATHER.
    """

    def __init__(
        self,
        client: WeatherClient,
        lat: float,
        lon: float,
        timeout_s: float = 5.0,
        fallback: WeatherSnapshot = FALLBACK_WEATHER,
    ) -> None:
        validate_coordinates(lat, lon)
        self._client = client
        self.lat = lat
        self.lon = lon
        self.timeout_s = timeout_s
        self.fallback = fallback

    async def get_current_weather(self) -> WeatherSnapshot:
        try:
            return await asyncio.wait_for(
                self._client.fetch_current(self.lat, self.lon), timeout=self.timeout_s
            )
        except Exception as e:
            log.warning("weather_fallback", latitude=self.lat, longitude=self.lon, error=repr(e))
            return self.fallback
