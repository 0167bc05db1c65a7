import asyncio
from collections import Counter
from typing import Dict, Optional

from pydantic import BaseModel


class HealthSnapshot(BaseModel):
    """Point-in-time view of the gauge, returned by the readiness endpoint."""

    healthy: bool
    value: int
    threshold: int
    last_error: Optional[str] = None
    error_counts: Dict[str, int] = {}


class HealthGauge:
    """
    Error-burst detector backing the readiness endpoint.

    Only unexpected errors are recorded here: exceptions that escaped the resolution error taxonomy, such as a bug in
    a handler. Ordinary resolution failures (an unknown handle, an unreachable PDS) say nothing about this instance
    and never reach the gauge. Each recorded error raises the gauge by ``weight`` and a background task lowers it by
    one per tick. While the gauge is above ``health_threshold`` the service reports itself as not ready.

    Errors are also counted by exception type so the readiness endpoint can show what has been going wrong.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._error_counts: Counter[str] = Counter()
        self._last_error: Optional[str] = None
        self._lock = asyncio.Lock()

    async def record_error(
        self, error: Optional[BaseException] = None, weight: int = 1
    ) -> int:
        async with self._lock:
            self._value += int(weight)
            if error is not None:
                self._last_error = type(error).__name__
                self._error_counts[self._last_error] += 1
            return self._value

    async def tick(self) -> int:
        async with self._lock:
            if self._value > 0:
                self._value -= 1
            return self._value

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold

    async def snapshot(self) -> HealthSnapshot:
        async with self._lock:
            return HealthSnapshot(
                healthy=self._value <= self._health_threshold,
                value=self._value,
                threshold=self._health_threshold,
                last_error=self._last_error,
                error_counts=dict(self._error_counts),
            )

    @property
    def value(self) -> int:
        return self._value
