"""
Process-wide request throttling for external services.

Every outbound request to EDHREC or Scryfall goes through `throttle()` on the
shared `rate_limiter` instance, so concurrent task executions in one worker
process collectively respect each service's minimum interval.
"""
import threading
import time
from typing import Callable, Optional

import structlog

from mtg_ingest.core.config import settings

logger = structlog.get_logger(__name__)

EDHREC = "edhrec"
SCRYFALL = "scryfall"


class RateLimiter:
    """
    Minimum-interval limiter keyed by service name.

    The check-sleep-stamp sequence runs entirely under one lock: a caller that
    has to wait holds the lock while sleeping, so the next caller measures its
    own deficit from the freshly stamped time and never under-waits.

    Usage:
        rate_limiter.throttle("edhrec")
        response = client.get(url)
    """

    def __init__(
        self,
        intervals: dict[str, float],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._intervals = dict(intervals)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request_times: dict[str, float] = {}

    def min_interval(self, service_name: str) -> float:
        return self._intervals.get(service_name, 0.0)

    def throttle(self, service_name: str) -> float:
        """
        Block until `min_interval(service_name)` has passed since the last
        request to that service, then record now as the last request time.

        Returns:
            The clock value stamped for this request.
        """
        interval = self.min_interval(service_name)
        with self._lock:
            last = self._last_request_times.get(service_name)
            if last is not None:
                # Loop guards against sleep() returning marginally early
                while True:
                    remaining = interval - (self._clock() - last)
                    if remaining <= 0:
                        break
                    logger.debug(
                        "Throttling request",
                        service=service_name,
                        wait_seconds=round(remaining, 3),
                    )
                    self._sleep(remaining)

            stamp = self._clock()
            self._last_request_times[service_name] = stamp
            return stamp

    def last_request_time(self, service_name: str) -> Optional[float]:
        with self._lock:
            return self._last_request_times.get(service_name)

    def reset(self) -> None:
        """Forget all recorded request times. Useful for testing."""
        with self._lock:
            self._last_request_times.clear()


# Shared instance injected into the HTTP clients
rate_limiter = RateLimiter(settings.rate_limit_intervals)
