"""订阅管理单元测试。

测试覆盖：
- on_load 持久订阅（已加载时立即回调、按注册顺序通知）
- get_data 一次性订阅（立即回调 / 轮询 / 超时静默 / 并发独立）
- 失败通道（on_error、wait_for_data 异常）
"""

import asyncio
from typing import Any

import pytest

from multifeed.modules.feeds.application.loader import FeedLoader
from multifeed.modules.feeds.application.registry import FeedRegistry
from multifeed.modules.feeds.application.subscriptions import SubscriptionManager
from multifeed.modules.feeds.domain.entities import FeedDefinition
from multifeed.modules.feeds.domain.exceptions import (
    FeedDataTimeoutError,
    FeedLoadError,
)
from tests.stubs import StubTransport

pytestmark = pytest.mark.anyio

POLL_INTERVAL = 0.01
MAX_ATTEMPTS = 20


class Harness:
    """registry + loader + subscriptions over a stub transport."""

    def __init__(self, *names: str):
        self.registry = FeedRegistry()
        for name in names:
            self.registry.register(FeedDefinition(name=name, url=f"https://example.com/{name}"))
        self.transport = StubTransport()
        self.loader = FeedLoader(self.registry, self.transport)
        self.subs = SubscriptionManager(
            self.registry, poll_interval=POLL_INTERVAL, max_attempts=MAX_ATTEMPTS
        )

    def load(self, name: str, payload: Any) -> None:
        self.loader.load(name)
        self.transport.complete(payload)


# ============================================
# on_load 测试
# ============================================


class TestOnLoad:
    """持久订阅测试。"""

    def test_invalid_arguments(self):
        h = Harness("a")
        assert h.subs.on_load("missing", print) is False
        assert h.subs.on_load("a", "not callable") is False  # type: ignore[arg-type]
        assert h.subs.on_load(None, print) is False  # type: ignore[arg-type]

    def test_before_first_load_not_called(self):
        h = Harness("a")
        received: list[Any] = []

        assert h.subs.on_load("a", received.append) is True
        assert received == []

        h.load("a", {"x": 1})
        assert received == [{"x": 1}]

    def test_after_load_called_immediately_then_on_reload(self):
        h = Harness("a")
        h.load("a", {"x": 1})
        received: list[Any] = []

        h.subs.on_load("a", received.append)
        assert received == [{"x": 1}]

        h.load("a", {"x": 2})
        assert received == [{"x": 1}, {"x": 2}]

    def test_immediate_call_with_none_value(self):
        h = Harness("a")
        h.load("a", None)
        received: list[Any] = []

        h.subs.on_load("a", received.append)
        assert received == [None]

    async def test_async_subscriber_scheduled(self):
        h = Harness("a")
        received: list[Any] = []

        async def subscriber(value: Any) -> None:
            received.append(value)

        h.subs.on_load("a", subscriber)
        h.load("a", 5)
        await asyncio.sleep(0)

        assert received == [5]


# ============================================
# get_data 测试
# ============================================


class TestGetData:
    """一次性订阅测试。"""

    def test_invalid_arguments(self):
        h = Harness("a")
        assert h.subs.get_data("", print) is False
        assert h.subs.get_data("a", None) is False  # type: ignore[arg-type]

    def test_immediate_when_value_exists(self):
        h = Harness("a")
        h.load("a", 42)
        received: list[Any] = []

        assert h.subs.get_data("a", received.append) is True
        assert received == [42]

    async def test_polls_until_value_arrives(self):
        h = Harness("b")
        h.loader.load("b")
        received: list[Any] = []

        task = h.subs.get_data("b", received.append)
        assert isinstance(task, asyncio.Task)

        asyncio.get_running_loop().call_later(0.05, h.transport.complete, 42)
        await asyncio.wait_for(task, timeout=1)

        assert received == [42]

        # 之后的重新加载不会再次触发一次性回调
        h.load("b", 43)
        await asyncio.sleep(POLL_INTERVAL * 3)
        assert received == [42]

    async def test_never_called_when_budget_exhausted(self):
        h = Harness("c")
        received: list[Any] = []

        task = h.subs.get_data("c", received.append)
        await asyncio.wait_for(task, timeout=1)

        assert task.done() and not task.cancelled()
        assert task.exception() is None
        assert received == []
        assert h.subs.pending_count() == 0

    async def test_concurrent_waits_are_independent(self):
        h = Harness("a")
        h.loader.load("a")
        first: list[Any] = []
        second: list[Any] = []

        t1 = h.subs.get_data("a", first.append)
        t2 = h.subs.get_data("a", second.append)
        t1.cancel()

        h.transport.complete("value")
        await asyncio.wait_for(t2, timeout=1)

        assert first == []
        assert second == ["value"]

    async def test_unknown_feed_picked_up_when_added(self):
        h = Harness()
        received: list[Any] = []
        task = h.subs.get_data("late", received.append)

        h.registry.register(FeedDefinition(name="late", url="https://example.com/late"))
        h.load("late", "hello")
        await asyncio.wait_for(task, timeout=1)

        assert received == ["hello"]

    async def test_failure_reported_to_on_error(self):
        h = Harness("a")
        h.loader.load("a")
        received: list[Any] = []
        errors: list[BaseException] = []

        task = h.subs.get_data("a", received.append, on_error=errors.append)
        h.transport.fail()
        await asyncio.wait_for(task, timeout=1)

        assert received == []
        assert len(errors) == 1
        assert isinstance(errors[0], FeedLoadError)
        assert errors[0].feed == "a"
        assert errors[0].error_code == "FEED_LOAD_FAILED"

    async def test_failure_without_on_error_keeps_waiting(self):
        h = Harness("a")
        h.loader.load("a")
        received: list[Any] = []

        task = h.subs.get_data("a", received.append)
        h.transport.fail()
        await asyncio.sleep(POLL_INTERVAL * 3)
        assert not task.done()

        h.load("a", "recovered")
        await asyncio.wait_for(task, timeout=1)
        assert received == ["recovered"]

    async def test_cancel_all(self):
        h = Harness("a")
        task = h.subs.get_data("a", print)

        h.subs.cancel_all()
        await asyncio.sleep(0)

        assert task.cancelled()


# ============================================
# wait_for_data 测试
# ============================================


class TestWaitForData:
    """可等待形式测试。"""

    async def test_returns_value(self):
        h = Harness("a")
        h.loader.load("a")
        asyncio.get_running_loop().call_later(0.02, h.transport.complete, {"ok": True})

        assert await h.subs.wait_for_data("a") == {"ok": True}

    async def test_timeout_raises(self):
        h = Harness("a")
        with pytest.raises(FeedDataTimeoutError) as exc_info:
            await h.subs.wait_for_data("a", poll_interval=0.001, max_attempts=3)
        assert exc_info.value.attempts == 3

    async def test_failure_raises(self):
        h = Harness("a")
        h.loader.load("a")
        h.transport.fail()

        with pytest.raises(FeedLoadError, match="failed to load"):
            await h.subs.wait_for_data("a")
