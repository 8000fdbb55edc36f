"""Base classes for scheduled collectors."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger("modem_scraper.collector")


@dataclass
class CollectorResult:
    """Outcome of one collection cycle."""

    source: str
    data: Any = None
    success: bool = True
    error: str | None = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def ok(cls, source: str, data: Any) -> "CollectorResult":
        return cls(source=source, data=data, success=True)

    @classmethod
    def failure(cls, source: str, error: str) -> "CollectorResult":
        return cls(source=source, success=False, error=error)


class Collector(ABC):
    """Interval-scheduled data source with failure backoff.

    Every consecutive failure doubles a penalty added to the poll interval
    (30s, 60s, 120s, ...) up to MAX_PENALTY_SECONDS. A success clears it,
    and so does PENALTY_RESET_HOURS without another failure.

    Collectors run on the single polling thread; collect() is never
    entered twice at once.
    """

    MAX_PENALTY_SECONDS = 3600
    PENALTY_RESET_HOURS = 24
    BASE_PENALTY_SECONDS = 30

    def __init__(self, poll_interval_seconds: int, clock=time.time):
        self._poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._last_poll = 0.0
        self._consecutive_failures = 0
        self._last_failure_time = 0.0

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this collector."""
        ...

    @abstractmethod
    def collect(self) -> CollectorResult:
        """Run a single collection cycle."""
        ...

    def is_enabled(self) -> bool:
        return True

    @property
    def poll_interval_seconds(self) -> int:
        return self._poll_interval_seconds

    @property
    def penalty_seconds(self) -> int:
        if self._consecutive_failures and self._last_failure_time:
            idle_hours = (self._clock() - self._last_failure_time) / 3600
            if idle_hours >= self.PENALTY_RESET_HOURS:
                log.info("%s: penalty reset after %.1fh without failures", self.name, idle_hours)
                self._consecutive_failures = 0
                self._last_failure_time = 0.0
        if not self._consecutive_failures:
            return 0
        return min(
            self.BASE_PENALTY_SECONDS * 2 ** (self._consecutive_failures - 1),
            self.MAX_PENALTY_SECONDS,
        )

    @property
    def effective_interval(self) -> float:
        return self._poll_interval_seconds + self.penalty_seconds

    def should_poll(self) -> bool:
        return (self._clock() - self._last_poll) >= self.effective_interval

    def record_success(self):
        if self._consecutive_failures:
            log.info("%s: recovered after %d failures", self.name, self._consecutive_failures)
        self._consecutive_failures = 0
        self._last_failure_time = 0.0
        self._last_poll = self._clock()

    def record_failure(self):
        now = self._clock()
        self._consecutive_failures += 1
        self._last_failure_time = now
        self._last_poll = now
        log.warning(
            "%s: failure #%d, next attempt in %ds",
            self.name, self._consecutive_failures, int(self.effective_interval),
        )
