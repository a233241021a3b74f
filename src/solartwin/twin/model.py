"""Weather-driven output prediction for a PV panel."""

from collections.abc import Sequence

from solartwin.models import ForecastPoint, HourlyWeather, PanelAttributes, Prediction, WeatherSnapshot

# Typical crystalline silicon coefficient: -0.45%/°C above 25°C
TEMP_COEFFICIENT_PER_C = -0.0045
REFERENCE_TEMP_C = 25.0
# Overcast sky removes up to 75% of output
CLOUD_ATTENUATION = 0.75
HUMIDITY_DRAG = 0.05

DEVIATION_EPSILON = 0.001


def output_factor(weather: WeatherSnapshot) -> float:
    """Fraction of rated output expected under `weather`.

    Multiplicative derating:
    1. Irradiance (sunlight ratio as proxy)
    2. Temperature above 25°C
    3. Cloud cover
    4. Humidity (small effect)
    """
    irradiance_factor = weather.sunlight_ratio
    temp_derate = 1 + TEMP_COEFFICIENT_PER_C * max(0.0, weather.temperature_c - REFERENCE_TEMP_C)
    cloud_factor = 1 - CLOUD_ATTENUATION * weather.cloud_cover
    humidity_drag = 1 - HUMIDITY_DRAG * (weather.humidity / 100)

    return max(0.0, irradiance_factor * temp_derate * cloud_factor * humidity_drag)


def predict_kw(weather: WeatherSnapshot, rated_kw: float) -> float:
    return rated_kw * output_factor(weather)


def predict(panel: PanelAttributes, weather: WeatherSnapshot) -> Prediction:
    """Predicted output of `panel` under `weather`."""
    return Prediction(energy_kw=predict_kw(weather, panel.rated_kw))


def deviation_ratio(predicted_kw: float, actual_kw: float, epsilon: float = DEVIATION_EPSILON) -> float:
    """Relative gap |predicted - actual| / max(predicted, epsilon)."""
    return abs(predicted_kw - actual_kw) / max(predicted_kw, epsilon)


def interpolate_snapshot(a: WeatherSnapshot, b: WeatherSnapshot, w: float) -> WeatherSnapshot:
    """Linear blend of two snapshots, w=0 gives `a`, w=1 gives `b`."""
    return WeatherSnapshot(
        temperature_c=a.temperature_c * (1 - w) + b.temperature_c * w,
        humidity=a.humidity * (1 - w) + b.humidity * w,
        cloud_cover=a.cloud_cover * (1 - w) + b.cloud_cover * w,
        sunlight_ratio=a.sunlight_ratio * (1 - w) + b.sunlight_ratio * w,
    )


def resample_forecast(
    now_ms: int,
    hourly: Sequence[HourlyWeather],
    rated_kw: float,
    window_h: float = 2.0,
    step_min: float = 5.0,
) -> list[ForecastPoint]:
    """Predicted output every `step_min` minutes over now ± `window_h` hours.

    Weather between hourly entries is linearly interpolated; points outside
    the hourly range are held at the nearest entry.
    """
    if not hourly:
        return []

    entries = sorted(hourly, key=lambda h: h.timestamp)
    start = now_ms - int(window_h * 3_600_000)
    end = now_ms + int(window_h * 3_600_000)
    step = int(step_min * 60_000)

    series = []
    t = start
    while t <= end:
        prev, nxt = entries[0], entries[-1]
        for entry in entries:
            if entry.timestamp <= t:
                prev = entry
            if entry.timestamp >= t:
                nxt = entry
                break

        span = max(1, nxt.timestamp - prev.timestamp)
        w = min(1.0, max(0.0, (t - prev.timestamp) / span))
        snapshot = interpolate_snapshot(prev.snapshot, nxt.snapshot, w)

        series.append(ForecastPoint(t=t, predicted=round(predict_kw(snapshot, rated_kw), 3)))
        t += step

    return series
