"""Command-line interface for the SolarTwin backend."""

import asyncio

import httpx
import structlog
import typer
from rich.console import Console
from rich.table import Table

from solartwin.alerts import AlertClassifier
from solartwin.config import Settings
from solartwin.ingestion import SyntheticWeatherSource, TelemetryGenerator, WeatherClient
from solartwin.models import AlertEvaluation, PanelAttributes, WeatherSnapshot
from solartwin.twin import deviation_ratio, predict

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(
    name="solartwin",
    help="Solar panel digital twin: live telemetry, prediction and alerts",
    no_args_is_help=True,
)
console = Console()

LEVEL_STYLE = {
    "ok": "[green]OK[/green]",
    "warning": "[yellow]WARNING[/yellow]",
    "critical": "[red]CRITICAL[/red]",
}


def _format_alert(alert: AlertEvaluation | None) -> str:
    if alert is None:
        return "[dim]n/a[/dim]"
    return LEVEL_STYLE.get(alert.level.value, alert.level.value)


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (default: HOST or 0.0.0.0)"),
    port: int = typer.Option(None, help="Port (default: PORT or 4000)"),
) -> None:
    """Run the HTTP/WebSocket server with the live pipeline."""
    import uvicorn

    from solartwin.server import create_app

    settings = Settings.from_env()
    overrides = {k: v for k, v in {"host": host, "port": port}.items() if v is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)

    console.print(f"[bold blue]Backend listening on http://localhost:{settings.port}[/bold blue]")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


@app.command(name="predict")
def predict_cmd(
    rated_kw: float = typer.Option(5.0, help="Rated panel capacity (kW)"),
    temperature: float = typer.Option(25.0, help="Ambient temperature (°C)"),
    humidity: float = typer.Option(50.0, help="Relative humidity (%)"),
    cloud_cover: float = typer.Option(0.0, help="Cloud cover (0..1)"),
    sunlight: float = typer.Option(1.0, help="Sunlight ratio (0..1)"),
    actual_kw: float = typer.Option(None, help="Measured output to compare against (kW)"),
    threshold: float = typer.Option(0.2, help="Alert threshold ratio"),
) -> None:
    """Predict panel output for given conditions and classify a measured value."""
    panel = PanelAttributes(panel_id="CLI", rated_kw=rated_kw, efficiency=0.18, area_m2=27.5)
    weather = WeatherSnapshot(
        temperature_c=temperature,
        humidity=humidity,
        cloud_cover=cloud_cover,
        sunlight_ratio=sunlight,
    )
    predicted = predict(panel, weather).energy_kw

    table = Table(title="Prediction")
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Predicted output", f"{predicted:.3f} kW")

    if actual_kw is not None:
        ratio = deviation_ratio(predicted, actual_kw)
        alert = AlertClassifier(threshold).evaluate(actual_kw, predicted, ratio)
        table.add_row("Actual output", f"{actual_kw:.3f} kW")
        table.add_row("Deviation ratio", f"{ratio:.3f}")
        table.add_row("Alert", _format_alert(alert))
        if alert is not None:
            table.add_row("Clean recommended", "yes" if alert.should_clean else "no")

    console.print(table)


@app.command()
def simulate(
    ticks: int = typer.Option(24, help="Number of ticks to simulate"),
    step_seconds: float = typer.Option(600.0, help="Wall-clock seconds between ticks"),
    rated_kw: float = typer.Option(5.0, help="Rated panel capacity (kW)"),
    threshold: float = typer.Option(0.2, help="Alert threshold ratio"),
    time_compression: float = typer.Option(6.0, help="Simulated seconds per wall-clock second"),
    seed: int = typer.Option(42, help="Random seed for sensor noise"),
) -> None:
    """Run the generator, synthetic weather and classifier offline."""
    panel = PanelAttributes(panel_id="SIM", rated_kw=rated_kw, efficiency=0.18, area_m2=27.5)
    generator = TelemetryGenerator(
        panel, interval_s=step_seconds, time_compression=time_compression, seed=seed, clock=lambda: 0.0
    )
    weather_source = SyntheticWeatherSource(time_compression=time_compression)
    classifier = AlertClassifier(threshold)

    table = Table(title=f"Simulated telemetry ({ticks} ticks)")
    table.add_column("Hour", justify="right")
    table.add_column("Actual kW", justify="right")
    table.add_column("Predicted kW", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("Alert")

    counts: dict[str, int] = {}
    for i in range(ticks):
        elapsed = i * step_seconds
        reading = generator.sample(now=elapsed)
        weather = weather_source.snapshot_at(elapsed)
        predicted = predict(panel, weather).energy_kw
        ratio = deviation_ratio(predicted, reading.energy_kw)
        alert = classifier.evaluate(reading.energy_kw, predicted, ratio)

        key = alert.level.value if alert else "n/a"
        counts[key] = counts.get(key, 0) + 1
        table.add_row(
            f"{generator.simulated_hour(elapsed):5.2f}",
            f"{reading.energy_kw:.3f}",
            f"{predicted:.3f}",
            f"{ratio:.3f}",
            _format_alert(alert),
        )

    console.print(table)
    summary = ", ".join(f"{level}: {count}" for level, count in sorted(counts.items()))
    console.print(f"\n[bold]{summary}[/bold]")


@app.command()
def weather(
    lat: float = typer.Option(..., help="Latitude"),
    lon: float = typer.Option(..., help="Longitude"),
) -> None:
    """Fetch current conditions from Open-Meteo."""

    async def fetch() -> WeatherSnapshot:
        async with WeatherClient() as client:
            return await client.fetch_current(lat, lon)

    try:
        snapshot = asyncio.run(fetch())
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Failed to fetch weather: {e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Weather at {lat:.4f}, {lon:.4f}")
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Temperature", f"{snapshot.temperature_c:.1f} °C")
    table.add_row("Humidity", f"{snapshot.humidity:.0f} %")
    table.add_row("Cloud cover", f"{snapshot.cloud_cover:.2f}")
    table.add_row("Sunlight ratio", f"{snapshot.sunlight_ratio:.2f}")
    console.print(table)


if __name__ == "__main__":
    app()
