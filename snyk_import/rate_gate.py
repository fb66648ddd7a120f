import threading
import time
from collections.abc import Callable


class RateGateCancelled(RuntimeError):
    pass


class RateGate:
    """One token is replenished every ``interval_seconds``, up to ``burst`` tokens.

    Every worker thread draws from the same instance, so the bound holds for the
    whole run rather than per worker. Callers reserve a token under the lock and
    then sleep outside it, which serves waiters in reservation order.
    """

    def __init__(
        self,
        *,
        interval_seconds: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self._interval_seconds = interval_seconds
        self._burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated_at = clock()
        self._lock = threading.Lock()

    def acquire(self, cancel_event: threading.Event | None = None) -> None:
        """Block until a token is available.

        Raises RateGateCancelled when ``cancel_event`` is set before or during
        the wait; the reserved token is handed back in that case.
        """

        if cancel_event is not None and cancel_event.is_set():
            raise RateGateCancelled("rate gate wait cancelled")

        with self._lock:
            self._refill()
            self._tokens -= 1
            delay = -self._tokens * self._interval_seconds if self._tokens < 0 else 0.0

        if delay <= 0:
            return

        if cancel_event is None:
            self._sleep(delay)
            return

        if cancel_event.wait(delay):
            with self._lock:
                self._refill()
                self._tokens = min(float(self._burst), self._tokens + 1)
            raise RateGateCancelled("rate gate wait cancelled")

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self._burst), self._tokens + elapsed / self._interval_seconds)
        self._updated_at = now
