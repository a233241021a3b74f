"""Per-tick orchestration: weather, prediction, alerting, fan-out."""

from typing import Protocol

import structlog

from solartwin.alerts import AlertClassifier
from solartwin.cleaning import CleaningActuator
from solartwin.ingestion.telemetry import TelemetryGenerator
from solartwin.ingestion.weather import WeatherSource
from solartwin.models import TelemetryEnvelope, TelemetryMessage, TelemetryReading
from solartwin.sink import ThingSpeakPublisher
from solartwin.twin import deviation_ratio, predict
from solartwin.twin.model import DEVIATION_EPSILON

log = structlog.get_logger()


class Subscriber(Protocol):
    async def send_text(self, data: str) -> None: ...


class SubscriberRegistry:
    """Connected live-channel clients.

    Clients are added on connect and removed on disconnect. A failed delivery
    does not remove the client.
    """

    def __init__(self) -> None:
        # Keyed by identity: connection objects need not be hashable
        self._subscribers: dict[int, Subscriber] = {}

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers[id(subscriber)] = subscriber
        log.info("subscriber_added", count=len(self._subscribers))

    def discard(self, subscriber: Subscriber) -> None:
        self._subscribers.pop(id(subscriber), None)
        log.info("subscriber_removed", count=len(self._subscribers))

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return id(subscriber) in self._subscribers

    async def broadcast(self, text: str) -> int:
        """Deliver `text` to every current subscriber. Returns the delivered count."""
        delivered = 0
        # Snapshot: clients may connect or disconnect while we await sends
        for subscriber in list(self._subscribers.values()):
            try:
                await subscriber.send_text(text)
            except Exception as e:
                log.warning("delivery_failed", subscriber=repr(subscriber), error=repr(e))
                continue
            delivered += 1
        return delivered


class TelemetryPipeline:
    """Turns each telemetry reading into a broadcast TelemetryMessage."""

    def __init__(
        self,
        weather: WeatherSource,
        classifier: AlertClassifier,
        cleaning: CleaningActuator,
        registry: SubscriberRegistry,
        publisher: ThingSpeakPublisher | None = None,
        epsilon: float = DEVIATION_EPSILON,
    ) -> None:
        self.weather = weather
        self.classifier = classifier
        self.cleaning = cleaning
        self.registry = registry
        self.publisher = publisher
        self.epsilon = epsilon
        self.last_message: TelemetryMessage | None = None

    def attach(self, generator: TelemetryGenerator) -> None:
        generator.add_listener(self.process)

    async def process(self, reading: TelemetryReading) -> TelemetryMessage:
        weather = await self.weather.get_current_weather()
        predicted_kw = predict(reading.panel, weather).energy_kw
        ratio = deviation_ratio(predicted_kw, reading.energy_kw, self.epsilon)

        alert = self.classifier.evaluate(
            actual_kw=reading.energy_kw,
            predicted_kw=predicted_kw,
            ratio=ratio,
        )
        if alert is not None and alert.should_clean:
            self._start_cleaning()

        message = TelemetryMessage(
            timestamp=reading.timestamp,
            actual_kw=reading.energy_kw,
            predicted_kw=predicted_kw,
            weather=weather,
            ratio=ratio,
            alert=alert,
        )
        self.last_message = message

        payload = TelemetryEnvelope(data=message).model_dump_json(by_alias=True)
        delivered = await self.registry.broadcast(payload)
        log.debug(
            "tick_processed",
            actual_kw=round(reading.energy_kw, 3),
            predicted_kw=round(predicted_kw, 3),
            ratio=round(ratio, 3),
            level=alert.level.value if alert else None,
            delivered=delivered,
        )

        if self.publisher is not None:
            await self.publisher.post_update(
                {
                    "field1": round(reading.energy_kw, 3),
                    "field2": round(predicted_kw, 3),
                    "field3": round(ratio * 100, 2),  # % deviation
                }
            )

        return message

    def _start_cleaning(self) -> None:
        try:
            self.cleaning.launch()
        except Exception:
            log.exception("cleaning_launch_failed")
