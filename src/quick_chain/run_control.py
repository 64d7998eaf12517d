"""Per-run cancellation, deadline and log state."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag; runners check it before each step."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        self._cancelled = True
        self.reason = reason


class Deadline:
    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.seconds = seconds
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def budget(self, step_timeout: float) -> float:
        return min(step_timeout, self.remaining())


class RunLog:
    """Ordered log entries for a single run; the tail feeds recovery prompts."""

    def __init__(self, chain_name: str) -> None:
        self.chain_name = chain_name
        self.entries: list[str] = []

    def record(self, message: str) -> None:
        self.entries.append(message)
        logger.info("[%s] %s", self.chain_name, message)

    def tail(self, count: int) -> list[str]:
        if count <= 0:
            return []
        return self.entries[-count:]
