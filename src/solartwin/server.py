"""HTTP and WebSocket surface of the SolarTwin backend.

Runs with:
uvicorn solartwin.server:create_app --factory --port 4000
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from solartwin.alerts import AlertClassifier
from solartwin.cleaning import CleaningActuator
from solartwin.config import Settings
from solartwin.ingestion import (
    FALLBACK_WEATHER,
    OpenMeteoWeatherSource,
    SyntheticWeatherSource,
    TelemetryGenerator,
    WeatherClient,
    WeatherSource,
)
from solartwin.models import CleaningResult, PanelAttributes, WeatherSnapshot
from solartwin.pipeline import SubscriberRegistry, TelemetryPipeline
from solartwin.sink import ThingSpeakPublisher
from solartwin.twin import resample_forecast

log = structlog.get_logger()


def build_weather_source(settings: Settings, client: WeatherClient, origin: float) -> WeatherSource:
    if settings.weather_lat is not None and settings.weather_lon is not None:
        return OpenMeteoWeatherSource(
            client,
            settings.weather_lat,
            settings.weather_lon,
            timeout_s=settings.weather_timeout_s,
        )
    # Share the generator's clock so simulated day and night line up
    return SyntheticWeatherSource(time_compression=settings.time_compression, origin=origin)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app. Components are created once per app in the lifespan."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        panel = PanelAttributes(
            panel_id=settings.panel_id,
            rated_kw=settings.rated_kw,
            efficiency=settings.panel_efficiency,
            area_m2=settings.panel_area_m2,
        )
        generator = TelemetryGenerator(
            panel,
            interval_s=settings.tick_interval_s,
            time_compression=settings.time_compression,
        )
        weather_client = WeatherClient(timeout=settings.weather_timeout_s)
        publisher = None
        if settings.thingspeak_write_key:
            publisher = ThingSpeakPublisher(
                settings.thingspeak_write_key,
                base_url=settings.thingspeak_base_url,
                min_interval_s=settings.thingspeak_min_interval_s,
                timeout_s=settings.thingspeak_timeout_s,
            )

        pipeline = TelemetryPipeline(
            weather=build_weather_source(settings, weather_client, generator.started_at),
            classifier=AlertClassifier(settings.alert_threshold),
            cleaning=CleaningActuator(duration_s=settings.cleaning_duration_s),
            registry=SubscriberRegistry(),
            publisher=publisher,
        )
        pipeline.attach(generator)

        app.state.settings = settings
        app.state.panel = panel
        app.state.generator = generator
        app.state.pipeline = pipeline
        app.state.weather_client = weather_client

        generator.start()
        log.info(
            "pipeline_started",
            threshold=settings.alert_threshold,
            rated_kw=settings.rated_kw,
            external_weather=settings.uses_external_weather,
            thingspeak=publisher is not None,
        )
        try:
            yield
        finally:
            await generator.stop()
            await generator.drain()
            await pipeline.cleaning.drain()
            await weather_client.aclose()
            if publisher is not None:
                await publisher.aclose()
            log.info("pipeline_stopped")

    app = FastAPI(
        title="SolarTwin API",
        description="Live solar panel telemetry compared against a weather-driven prediction.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/config")
    async def config(request: Request) -> dict[str, float]:
        s: Settings = request.app.state.settings
        return {"threshold": s.alert_threshold, "ratedKw": s.rated_kw}

    @app.post("/api/clean")
    async def clean(request: Request) -> JSONResponse:
        pipeline: TelemetryPipeline = request.app.state.pipeline
        result: CleaningResult = await pipeline.cleaning.trigger_cleaning()
        return JSONResponse(result.model_dump(mode="json", by_alias=True))

    @app.get("/api/weather")
    async def weather(request: Request) -> JSONResponse:
        pipeline: TelemetryPipeline = request.app.state.pipeline
        snapshot = await pipeline.weather.get_current_weather()
        return JSONResponse(snapshot.model_dump(by_alias=True))

    @app.get("/api/weather/current")
    async def weather_current(
        request: Request,
        lat: float | None = Query(None),
        lon: float | None = Query(None),
    ) -> JSONResponse:
        bad = _check_coordinates(lat, lon)
        if bad is not None:
            return bad
        client: WeatherClient = request.app.state.weather_client
        try:
            snapshot: WeatherSnapshot = await client.fetch_current(lat, lon)  # type: ignore[arg-type]
        except (httpx.HTTPError, ValueError) as e:
            log.warning("weather_proxy_failed", latitude=lat, longitude=lon, error=repr(e))
            return JSONResponse(
                status_code=502,
                content={
                    "error": "Failed to fetch weather",
                    "fallback": FALLBACK_WEATHER.model_dump(by_alias=True),
                },
            )
        return JSONResponse(snapshot.model_dump(by_alias=True))

    @app.get("/api/prediction/forecast")
    async def prediction_forecast(
        request: Request,
        lat: float | None = Query(None),
        lon: float | None = Query(None),
    ) -> JSONResponse:
        """Predicted output every 5 minutes for now ± 2 hours from the hourly forecast."""
        bad = _check_coordinates(lat, lon)
        if bad is not None:
            return bad
        client: WeatherClient = request.app.state.weather_client
        try:
            hourly = await client.fetch_hourly(lat, lon)  # type: ignore[arg-type]
        except (httpx.HTTPError, ValueError) as e:
            log.warning("forecast_proxy_failed", latitude=lat, longitude=lon, error=repr(e))
            return JSONResponse(
                status_code=502, content={"error": "Failed to build prediction series", "series": []}
            )
        panel: PanelAttributes = request.app.state.panel
        series = resample_forecast(int(time.time() * 1000), hourly, panel.rated_kw)
        return JSONResponse({"series": [p.model_dump(by_alias=True) for p in series]})

    @app.get("/api/telemetry/latest")
    async def telemetry_latest(request: Request) -> JSONResponse:
        pipeline: TelemetryPipeline = request.app.state.pipeline
        if pipeline.last_message is None:
            return JSONResponse(status_code=404, content={"error": "No telemetry yet"})
        return JSONResponse(pipeline.last_message.model_dump(mode="json", by_alias=True))

    @app.websocket("/ws")
    async def live(websocket: WebSocket) -> None:
        registry: SubscriberRegistry = websocket.app.state.pipeline.registry
        await websocket.accept()
        registry.add(websocket)
        try:
            # Server-push only; inbound frames of either kind are ignored
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            registry.discard(websocket)

    return app


def _check_coordinates(lat: float | None, lon: float | None) -> JSONResponse | None:
    if lat is None or lon is None:
        return JSONResponse(status_code=400, content={"error": "lat and lon are required"})
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return JSONResponse(status_code=400, content={"error": "lat and lon out of range"})
    return None
