"""Per-feed refresh timers."""

import asyncio
import math
import numbers
from collections.abc import Callable
from typing import Any

from loguru import logger

from multifeed.core.infrastructure.logging import BusinessEvents
from multifeed.modules.feeds.application.registry import FeedRegistry


class RefreshScheduler:
    """Owns at most one repeating timer per feed.

    Each tick hands the feed name to ``on_tick``, the same path a manual
    reload takes.
    """

    def __init__(
        self,
        registry: FeedRegistry,
        on_tick: Callable[[str], Any],
        min_refresh_minutes: float = 0.5,
        unit_seconds: float = 60.0,
    ):
        self.registry = registry
        self.on_tick = on_tick
        self.min_refresh_minutes = min_refresh_minutes
        self.unit_seconds = unit_seconds

    def validate_interval(self, interval_minutes: Any) -> float | None:
        """Return the interval rounded to two decimals, or None when it cannot be scheduled."""
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, numbers.Real):
            return None
        value = float(interval_minutes)
        if not math.isfinite(value) or value < self.min_refresh_minutes:
            return None
        return round(value, 2)

    def arm(self, name: str, interval_minutes: Any) -> bool:
        state = self.registry.state(name)
        if state is None:
            return False

        interval = self.validate_interval(interval_minutes)
        if interval is None:
            logger.warning(
                f"Cannot set refresh for feed '{name}': refresh rate {interval_minutes!r} "
                f"must be a number of minutes no lower than {self.min_refresh_minutes}"
            )
            return False

        self.disarm(name)
        period = interval * self.unit_seconds
        state.timer = asyncio.get_running_loop().create_task(
            self._run(name, period), name=f"refresh:{name}"
        )
        BusinessEvents.refresh_armed(feed=name, interval_minutes=interval)
        return True

    def disarm(self, name: str) -> None:
        state = self.registry.state(name)
        if state is not None and state.timer is not None:
            state.timer.cancel()
            state.timer = None

    def disarm_all(self) -> None:
        for state in self.registry.states():
            self.disarm(state.name)

    def is_armed(self, name: str) -> bool:
        state = self.registry.state(name)
        return state is not None and state.timer is not None and not state.timer.done()

    def active_count(self) -> int:
        return sum(1 for name in self.registry.names() if self.is_armed(name))

    async def _run(self, name: str, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            try:
                self.on_tick(name)
            except Exception as e:
                logger.exception(f"Refresh tick failed for feed '{name}': {e}")
