"""External metrics sinks."""

from solartwin.sink.thingspeak import ThingSpeakPublisher

__all__ = ["ThingSpeakPublisher"]
