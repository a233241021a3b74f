"""SolarTwin: simulated solar panel telemetry against a weather-driven prediction."""

__version__ = "0.1.0"
