"""订阅管理。

两种订阅语义：
- on_load: 持久订阅，每次加载成功都会通知（已加载过则立即回调一次）
- get_data: 一次性订阅，轮询直到数据可用后回调一次，超出预算则静默停止
"""

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from multifeed.modules.feeds.application.dispatch import invoke
from multifeed.modules.feeds.application.registry import FeedRegistry
from multifeed.modules.feeds.domain.exceptions import (
    FeedDataTimeoutError,
    FeedLoadError,
)


class SubscriptionManager:
    """Persistent and one-shot subscribers for registered feeds."""

    def __init__(
        self,
        registry: FeedRegistry,
        poll_interval: float = 0.25,
        max_attempts: int = 120,
    ):
        self.registry = registry
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._waiters: set[asyncio.Task[None]] = set()

    def on_load(self, name: str, callback: Callable[[Any], Any]) -> bool:
        if not isinstance(name, str) or not callable(callback):
            return False
        state = self.registry.state(name)
        if state is None:
            return False

        state.subscribers.append(callback)
        if state.has_loaded_once:
            invoke(callback, state.last_value, name)
        return True

    def on_error(self, name: str, callback: Callable[[BaseException], Any]) -> bool:
        if not isinstance(name, str) or not callable(callback):
            return False
        state = self.registry.state(name)
        if state is None:
            return False

        state.error_subscribers.append(callback)
        return True

    def get_data(
        self,
        name: str,
        callback: Callable[[Any], Any],
        on_error: Callable[[BaseException], Any] | None = None,
    ) -> bool | asyncio.Task[None]:
        """Deliver the feed value to ``callback`` exactly once.

        Returns True when the value was delivered immediately, the polling
        task when delivery is pending, False for invalid arguments.
        """
        if not isinstance(name, str) or not name or not callable(callback):
            return False

        state = self.registry.state(name)
        if state is not None and state.has_value:
            invoke(callback, state.last_value, name)
            return True

        task = asyncio.get_running_loop().create_task(
            self._deliver_when_ready(name, callback, on_error), name=f"get_data:{name}"
        )
        self._waiters.add(task)
        task.add_done_callback(self._waiters.discard)
        return task

    async def wait_for_data(
        self,
        name: str,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
        fail_fast: bool = True,
    ) -> Any:
        """Poll until the feed has a value.

        With ``fail_fast`` off, failed loads keep the wait going so a later
        reload can still deliver.

        Raises:
            FeedLoadError: the latest load failed and no value exists
            FeedDataTimeoutError: the attempt budget ran out
        """
        interval = self.poll_interval if poll_interval is None else poll_interval
        attempts = self.max_attempts if max_attempts is None else max_attempts

        state = self.registry.state(name)
        if state is not None and state.has_value:
            return state.last_value

        for _ in range(attempts):
            await asyncio.sleep(interval)
            state = self.registry.state(name)
            if state is None:
                continue
            if state.has_value:
                return state.last_value
            if fail_fast and state.last_error is not None:
                raise FeedLoadError(name, state.last_error)

        raise FeedDataTimeoutError(name, attempts)

    def pending_count(self) -> int:
        return len(self._waiters)

    def cancel_all(self) -> None:
        for task in list(self._waiters):
            task.cancel()

    async def _deliver_when_ready(
        self,
        name: str,
        callback: Callable[[Any], Any],
        on_error: Callable[[BaseException], Any] | None,
    ) -> None:
        try:
            value = await self.wait_for_data(name, fail_fast=on_error is not None)
        except FeedDataTimeoutError as e:
            logger.debug(f"get_data gave up: {e}")
            return
        except FeedLoadError as e:
            if on_error is not None:
                invoke(on_error, e, name)
            return

        invoke(callback, value, name)
