import random
from typing import Optional


def compute_delay_ms(
    attempt: int,
    base_ms: int = 500,
    max_ms: int = 15000,
    factor: float = 2.0,
    jitter: float = 0.25,
    rng: Optional[random.Random] = None,
) -> int:
    """Delay before retry number ``attempt`` (0-based).

    ``min(max_ms, base_ms * factor ** attempt)`` scaled by a uniform random
    factor in ``[1 - jitter, 1 + jitter]`` and clamped at zero.
    """
    exp = min(max_ms, base_ms * factor ** max(0, attempt))
    rand = ((rng or random).random() * 2 - 1) * jitter
    return max(0, round(exp * (1 + rand)))


class ExponentialBackoff:
    def __init__(self, base_ms=500, max_ms=15000, factor=2.0, jitter=0.25, rng=None):
        self.base_ms = base_ms
        self.max_ms = max_ms
        self.factor = factor
        self.jitter = jitter
        self.rng = rng
        self.attempt = 0

    def next_delay_ms(self) -> int:
        delay = compute_delay_ms(
            self.attempt,
            base_ms=self.base_ms,
            max_ms=self.max_ms,
            factor=self.factor,
            jitter=self.jitter,
            rng=self.rng,
        )
        self.attempt += 1
        return delay

    def reset(self) -> None:
        self.attempt = 0
