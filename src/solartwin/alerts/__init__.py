"""Alert classification."""

from solartwin.alerts.classifier import AlertClassifier

__all__ = ["AlertClassifier"]
