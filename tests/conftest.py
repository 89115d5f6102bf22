"""
pytest 配置和共享 fixtures。

使用方法：
    # 运行所有测试
    uv run pytest

    # 只运行单元测试
    uv run pytest tests/unit/

    # 运行带覆盖率
    uv run pytest --cov=multifeed --cov-report=html
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest

from multifeed.core.config import Settings
from multifeed.modules.feeds.application.controller import FeedController
from tests.stubs import StubTransport


@pytest.fixture
def anyio_backend() -> str:
    """只使用 asyncio 后端。"""
    return "asyncio"


# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def test_settings() -> Settings:
    """测试环境配置：缩短轮询与刷新时间。

    - 轮询间隔 10ms，最多 20 次（约 200ms 预算）
    - 刷新单位 0.1 秒/分钟，0.5 分钟刷新 = 50ms
    """
    return Settings(
        ENVIRONMENT="local",
        LOG_LEVEL="DEBUG",
        FEED_POLL_INTERVAL_MS=10,
        FEED_POLL_MAX_ATTEMPTS=20,
        FEED_REFRESH_UNIT_SECONDS=0.1,
    )


@pytest.fixture
def stub_transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
async def make_controller(
    test_settings: Settings,
    stub_transport: StubTransport,
) -> AsyncGenerator[Callable[..., FeedController], None]:
    """创建使用 stub 传输的控制器，测试结束后关闭。"""
    created: list[FeedController] = []

    def _make(config: dict[str, Any] | None = None, **kwargs: Any) -> FeedController:
        kwargs.setdefault("settings", test_settings)
        controller = FeedController(config, kwargs.pop("transport", stub_transport), **kwargs)
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        await controller.aclose()
