"""Rate-limited forwarding of pipeline metrics to ThingSpeak."""

import time
from collections.abc import Callable, Mapping

import httpx
import structlog

log = structlog.get_logger()

THINGSPEAK_URL = "https://api.thingspeak.com"
# Free tier accepts one update every 15s
DEFAULT_MIN_INTERVAL_S = 16.0
FIELD_NAMES = frozenset(f"field{i}" for i in range(1, 9))


class ThingSpeakPublisher:
    """Best-effort publisher: drops updates when rate-limited, never raises on failure.

    A failed post leaves the last-post time untouched so the next update may
    retry right away. There is no queue or backlog.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = THINGSPEAK_URL,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        timeout_s: float = 8.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.min_interval_s = min_interval_s
        self.timeout_s = timeout_s
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._clock = clock
        self._last_post: float | None = None

    def can_post_now(self) -> bool:
        """True once `min_interval_s` has passed since the last successful post."""
        if self._last_post is None:
            return True
        return self._clock() - self._last_post >= self.min_interval_s

    async def post_update(self, fields: Mapping[str, float | str]) -> bool:
        """Post up to 8 channel fields. Returns True only if the update was accepted."""
        unknown = set(fields) - FIELD_NAMES
        if unknown:
            raise ValueError(f"Unknown ThingSpeak fields: {sorted(unknown)}")

        if not self.can_post_now():
            return False

        now = self._clock()
        try:
            response = await self._client.post(
                f"{self.base_url}/update.json",
                json={"api_key": self._api_key, **fields},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("thingspeak_post_failed", error=repr(e))
            return False

        self._last_post = now
        log.debug("thingspeak_posted", fields=len(fields))
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
