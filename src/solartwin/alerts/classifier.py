"""Threshold-based alerting on the predicted vs actual deviation ratio."""

import math

import structlog

from solartwin.models import AlertEvaluation, AlertLevel

log = structlog.get_logger()

# Upper band starts at this multiple of the threshold
CRITICAL_MULTIPLIER = 1.5

MESSAGES = {
    AlertLevel.OK: "Within expected range",
    AlertLevel.WARNING: "Performance below expectation",
    AlertLevel.CRITICAL: "Significant performance drop detected",
}


class AlertClassifier:
    """Three-band step classifier parameterized by a threshold ratio T.

    ratio < T          -> ok
    T <= ratio < 1.5T  -> warning
    ratio >= 1.5T      -> critical (cleaning recommended)
    """

    def __init__(self, threshold_ratio: float = 0.2) -> None:
        if threshold_ratio <= 0:
            raise ValueError(f"threshold_ratio must be positive, got {threshold_ratio}")
        self.threshold_ratio = threshold_ratio

    def level_for(self, ratio: float) -> AlertLevel:
        if ratio < self.threshold_ratio:
            return AlertLevel.OK
        if ratio < self.threshold_ratio * CRITICAL_MULTIPLIER:
            return AlertLevel.WARNING
        return AlertLevel.CRITICAL

    def evaluate(self, actual_kw: float, predicted_kw: float, ratio: float) -> AlertEvaluation | None:
        """Classify a tick. Returns None when there is no predicted baseline (e.g. night)."""
        if not math.isfinite(predicted_kw) or predicted_kw <= 0:
            return None

        level = self.level_for(ratio)
        if level is not AlertLevel.OK:
            log.debug(
                "alert_raised",
                level=level.value,
                ratio=round(ratio, 3),
                actual_kw=round(actual_kw, 3),
                predicted_kw=round(predicted_kw, 3),
            )

        return AlertEvaluation(
            level=level,
            message=MESSAGES[level],
            ratio=ratio,
            should_clean=level is AlertLevel.CRITICAL,
        )
