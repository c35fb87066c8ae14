"""⏳ Polling backoff - Delays between status polls of a lineage query."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from ..config import PollingConfig


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff capped at a maximum delay.

    Example:
        delays = BackoffPolicy(initial=1, maximum=4).delays()
        [next(delays) for _ in range(5)]  # [1, 2, 4, 4, 4]
    """

    initial: float = 1.0
    maximum: float = 4.0
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.initial <= 0:
            raise ValueError("initial delay must be positive")
        if self.maximum < self.initial:
            raise ValueError("maximum delay must not be below the initial delay")
        if self.factor < 1:
            raise ValueError("backoff factor must be at least 1")

    @classmethod
    def from_config(cls, config: PollingConfig) -> "BackoffPolicy":
        return cls(
            initial=config.initial_delay,
            maximum=config.max_delay,
            factor=config.backoff_factor,
        )

    def delays(self) -> Iterator[float]:
        """Endless sequence of non-decreasing delays in seconds."""
        delay = min(self.initial, self.maximum)
        while True:
            yield delay
            delay = min(delay * self.factor, self.maximum)
