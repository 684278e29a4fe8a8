import threading
import time


class MonotonicClock:
    """Epoch-millisecond clock that never hands out the same value twice.

    Outbox entries are ordered by their ``createdAt``; two writes landing in
    the same millisecond would otherwise compare equal.
    """

    def __init__(self, time_fn=time.time):
        self._time_fn = time_fn
        self._last = 0
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            now = int(self._time_fn() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now


clock = MonotonicClock()


def now_ms() -> int:
    return clock.now_ms()
