"""Self-tuning poll interval policies."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IntervalPolicy(ABC):
    """Decide how long to wait before the next sync cycle."""

    @abstractmethod
    def evaluate(self) -> None:
        """Record that the last cycle did productive work."""

    @abstractmethod
    def reset(self) -> None:
        """Record that the last cycle found nothing to do."""

    @abstractmethod
    def get_interval(self) -> float:
        """Return the current interval in seconds."""

    @abstractmethod
    def get_max_interval(self) -> float:
        """Return the upper bound of the interval in seconds."""


class ExponentialBackoffPolicy(IntervalPolicy):
    """Snap back to ``base_interval`` on activity, back off exponentially when idle.

    While repositories keep changing the walker re-polls at the base rate.
    Every idle cycle multiplies the interval by ``multiplier`` until it
    reaches ``max_interval`` (ten times the base unless given).
    """

    def __init__(
        self,
        base_interval: float,
        max_interval: float | None = None,
        multiplier: float = 2.0,
    ) -> None:
        if base_interval <= 0:
            raise ValueError("base_interval must be positive")
        if max_interval is None:
            max_interval = base_interval * 10
        if max_interval < base_interval:
            raise ValueError("max_interval must not be smaller than base_interval")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

        self._base_interval = float(base_interval)
        self._max_interval = float(max_interval)
        self._multiplier = multiplier
        self._interval = self._base_interval

    @property
    def base_interval(self) -> float:
        return self._base_interval

    def evaluate(self) -> None:
        self._interval = self._base_interval

    def reset(self) -> None:
        self._interval = min(self._interval * self._multiplier, self._max_interval)

    def get_interval(self) -> float:
        return self._interval

    def get_max_interval(self) -> float:
        return self._max_interval
