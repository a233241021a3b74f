"""Digital twin: predicted panel output from weather."""

from solartwin.twin.model import deviation_ratio, predict, predict_kw, resample_forecast

__all__ = ["deviation_ratio", "predict", "predict_kw", "resample_forecast"]
