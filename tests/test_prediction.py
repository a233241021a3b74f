"""Tests for the prediction model and forecast resampling."""

import pytest

from solartwin.models import HourlyWeather, PanelAttributes, WeatherSnapshot
from solartwin.twin import deviation_ratio, predict, predict_kw, resample_forecast
from solartwin.twin.model import interpolate_snapshot

HOUR_MS = 3_600_000


@pytest.fixture
def panel() -> PanelAttributes:
    return PanelAttributes(panel_id="DEMO-001", rated_kw=5.0, efficiency=0.18, area_m2=27.5)


def snapshot(
    temperature_c: float = 25.0,
    humidity: float = 50.0,
    cloud_cover: float = 0.0,
    sunlight_ratio: float = 1.0,
) -> WeatherSnapshot:
    return WeatherSnapshot(
        temperature_c=temperature_c,
        humidity=humidity,
        cloud_cover=cloud_cover,
        sunlight_ratio=sunlight_ratio,
    )


class TestPredict:
    def test_reference_scenario(self, panel: PanelAttributes) -> None:
        weather = snapshot(temperature_c=30.0, humidity=50.0, cloud_cover=0.2, sunlight_ratio=0.8)
        result = predict(panel, weather)
        expected = 5 * 0.8 * (1 - 0.0045 * 5) * (1 - 0.75 * 0.2) * (1 - 0.05 * 0.5)
        assert result.energy_kw == pytest.approx(expected)
        assert result.energy_kw == pytest.approx(3.24, abs=0.01)

    def test_no_temperature_derate_below_25c(self, panel: PanelAttributes) -> None:
        cool = predict(panel, snapshot(temperature_c=10.0, humidity=0.0))
        reference = predict(panel, snapshot(temperature_c=25.0, humidity=0.0))
        assert cool.energy_kw == reference.energy_kw == pytest.approx(5.0)

    def test_zero_sunlight_gives_zero(self, panel: PanelAttributes) -> None:
        assert predict(panel, snapshot(sunlight_ratio=0.0)).energy_kw == 0.0

    def test_extreme_heat_clamps_to_zero(self, panel: PanelAttributes) -> None:
        # Derate goes negative above ~247°C
        assert predict(panel, snapshot(temperature_c=300.0)).energy_kw == 0.0

    def test_full_cloud_cover_keeps_a_quarter(self, panel: PanelAttributes) -> None:
        result = predict(panel, snapshot(cloud_cover=1.0, humidity=0.0))
        assert result.energy_kw == pytest.approx(5.0 * 0.25)

    @pytest.mark.parametrize("temperature_c", [-20.0, 0.0, 25.0, 45.0, 60.0])
    @pytest.mark.parametrize("humidity", [0.0, 50.0, 100.0])
    @pytest.mark.parametrize("cloud_cover", [0.0, 0.5, 1.0])
    @pytest.mark.parametrize("sunlight_ratio", [0.0, 0.3, 1.0])
    def test_prediction_bounded_by_rating(
        self,
        panel: PanelAttributes,
        temperature_c: float,
        humidity: float,
        cloud_cover: float,
        sunlight_ratio: float,
    ) -> None:
        weather = snapshot(temperature_c, humidity, cloud_cover, sunlight_ratio)
        result = predict(panel, weather).energy_kw
        assert 0.0 <= result <= panel.rated_kw

    def test_zero_rating(self) -> None:
        assert predict_kw(snapshot(), rated_kw=0.0) == 0.0


class TestDeviationRatio:
    def test_relative_gap(self) -> None:
        assert deviation_ratio(4.0, 3.0) == pytest.approx(0.25)

    def test_symmetric_in_sign(self) -> None:
        assert deviation_ratio(4.0, 5.0) == pytest.approx(0.25)

    def test_zero_prediction_uses_epsilon(self) -> None:
        assert deviation_ratio(0.0, 0.0) == 0.0
        assert deviation_ratio(0.0, 0.002) == pytest.approx(2.0)

    def test_reference_scenario_ratio(self, panel: PanelAttributes) -> None:
        weather = snapshot(temperature_c=30.0, humidity=50.0, cloud_cover=0.2, sunlight_ratio=0.8)
        predicted = predict(panel, weather).energy_kw
        assert deviation_ratio(predicted, 2.0) == pytest.approx(0.383, abs=0.001)


class TestResampleForecast:
    def test_empty_hourly_gives_empty_series(self) -> None:
        assert resample_forecast(0, [], rated_kw=5.0) == []

    def test_series_covers_window_every_five_minutes(self) -> None:
        now = 10 * HOUR_MS
        hourly = [HourlyWeather(timestamp=now + k * HOUR_MS, snapshot=snapshot()) for k in range(-3, 4)]
        series = resample_forecast(now, hourly, rated_kw=5.0)

        assert len(series) == 49
        assert series[0].t == now - 2 * HOUR_MS
        assert series[-1].t == now + 2 * HOUR_MS
        assert series[1].t - series[0].t == 5 * 60_000

    def test_midpoint_is_interpolated(self) -> None:
        t0 = 5 * HOUR_MS
        dark = snapshot(sunlight_ratio=0.0)
        bright = snapshot(sunlight_ratio=1.0)
        hourly = [HourlyWeather(timestamp=t0, snapshot=dark), HourlyWeather(timestamp=t0 + HOUR_MS, snapshot=bright)]

        series = resample_forecast(t0 + HOUR_MS // 2, hourly, rated_kw=5.0, window_h=0)

        assert len(series) == 1
        expected = predict_kw(interpolate_snapshot(dark, bright, 0.5), 5.0)
        assert series[0].predicted == pytest.approx(round(expected, 3))

    def test_points_outside_range_hold_nearest_entry(self) -> None:
        now = 20 * HOUR_MS
        only = HourlyWeather(timestamp=now, snapshot=snapshot(sunlight_ratio=0.5))
        series = resample_forecast(now, [only], rated_kw=5.0)
        assert len({p.predicted for p in series}) == 1

    def test_predictions_rounded_to_three_decimals(self) -> None:
        hourly = [HourlyWeather(timestamp=0, snapshot=snapshot(sunlight_ratio=0.333))]
        series = resample_forecast(0, hourly, rated_kw=5.0, window_h=0)
        assert series[0].predicted == round(series[0].predicted, 3)
