"""Feed 控制器。

对外的控制面：运行时添加、删除、重新加载 feed，以及订阅数据。
所有操作都是非阻塞的，需要在运行中的事件循环内调用。
"""

import asyncio
from collections.abc import Callable, Iterable, Mapping
from types import TracebackType
from typing import Any, Self

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from multifeed.core.config import Settings, settings as default_settings
from multifeed.core.domain.url_params import split_names
from multifeed.core.infrastructure.logging import BusinessEvents
from multifeed.modules.feeds.application.loader import FeedLoader
from multifeed.modules.feeds.application.registry import FeedRegistry
from multifeed.modules.feeds.application.scheduler import RefreshScheduler
from multifeed.modules.feeds.application.subscriptions import SubscriptionManager
from multifeed.modules.feeds.domain.entities import MISSING, FeedDefinition
from multifeed.modules.feeds.domain.exceptions import InvalidFeedConfigError
from multifeed.modules.feeds.domain.transport import Transport
from multifeed.modules.feeds.infrastructure.transports import RoutingTransport


class ControllerConfig(BaseModel):
    """Controller configuration consumed at construction."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    feeds: dict[str, Any] = Field(default_factory=dict, description="feed 名称 -> URL 或配置")
    logging: bool = Field(default=False, description="输出 reload/remove 等通知日志")
    init_on_load: bool = Field(default=True, alias="initOnLoad", description="构造时立即加载")
    cache_time: float | None = Field(default=None, alias="cacheTime", description="缓存时间桶（分钟）")


class FeedController:
    """Public control surface over the registry, loader, scheduler and subscriptions."""

    def __init__(
        self,
        config: ControllerConfig | Mapping[str, Any] | None = None,
        transport: Transport | None = None,
        *,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        if isinstance(config, ControllerConfig):
            self.config = config
        else:
            self.config = ControllerConfig.model_validate(config or {})

        self._owns_transport = transport is None
        self.transport: Transport = transport or RoutingTransport()

        self.registry = FeedRegistry()
        self.loader = FeedLoader(
            self.registry,
            self.transport,
            cache_time=self.config.cache_time,
            cache_param=self.settings.FEED_CACHE_PARAM,
            jsonp_prefix=self.settings.JSONP_NAME_PREFIX,
        )
        self.scheduler = RefreshScheduler(
            self.registry,
            on_tick=self._on_refresh_tick,
            min_refresh_minutes=self.settings.FEED_MIN_REFRESH_MINUTES,
            unit_seconds=self.settings.FEED_REFRESH_UNIT_SECONDS,
        )
        self.subscriptions = SubscriptionManager(
            self.registry,
            poll_interval=self.settings.poll_interval_sec,
            max_attempts=self.settings.FEED_POLL_MAX_ATTEMPTS,
        )
        self._closed = False

        for name, raw in self.config.feeds.items():
            try:
                self.registry.register(FeedDefinition.from_config(name, raw))
            except InvalidFeedConfigError as e:
                logger.warning(f"Skipping feed '{name}': {e}")

        if self.config.init_on_load:
            for definition in self.registry.all():
                self.loader.load(definition.name)
                if definition.refresh:
                    self.scheduler.arm(definition.name, definition.refresh)

    # ------------------------------------------------------------------
    # 控制操作
    # ------------------------------------------------------------------

    def reload(self, names: str | Iterable[str] | None = None) -> bool:
        """Reload every feed, or only the named ones.

        ``names`` is a whitespace-separated string or an iterable of names;
        unknown names are skipped. Timers are armed for feeds with a refresh
        interval and no active timer.
        """
        if not len(self.registry):
            return False

        if names is None:
            self._notice("Reloading all feeds")
            targets = self.registry.names()
        else:
            targets = [name for name in split_names(names) if name in self.registry]

        for name in targets:
            if names is not None:
                self._notice(f"Reloading feed '{name}'")
            self.loader.load(name)
            self._ensure_timer(name)
        return bool(targets)

    def add_feed(
        self,
        definition: FeedDefinition | str,
        url: str | None = None,
        **options: Any,
    ) -> bool:
        """Register a feed, load it now and arm its refresh timer.

        Accepts a ``FeedDefinition`` or ``(name, url, **options)`` where
        options are ``format``, ``refresh``, ``normalize`` and
        ``jsonp_callback``.
        """
        if isinstance(definition, FeedDefinition):
            feed = definition
        elif isinstance(definition, str) and definition and url:
            try:
                feed = FeedDefinition.from_config(definition, {"url": url, **options})
            except InvalidFeedConfigError as e:
                logger.warning(f"Cannot add feed: {e}")
                return False
        else:
            logger.warning("Cannot add feed: missing name or url")
            return False

        if feed.name in self.registry:
            logger.warning(f"Cannot add feed '{feed.name}': this feed already exists")
            return False
        if not self.registry.register(feed):
            return False

        BusinessEvents.feed_added(feed=feed.name, url=feed.url)
        self.loader.load(feed.name)
        if feed.refresh:
            self.scheduler.arm(feed.name, feed.refresh)
        return True

    def remove_feed(self, names: str | Iterable[str]) -> bool:
        """Remove one or more feeds with their timers, requests and subscribers."""
        removed = False
        for name in split_names(names):
            if name not in self.registry:
                continue

            self.scheduler.disarm(name)
            state = self.registry.state(name)
            if state is not None:
                self.loader.abandon(state)
                state.subscribers.clear()
                state.error_subscribers.clear()
            self.registry.unregister(name)

            self._notice(f"Notice: feed removed: '{name}'")
            BusinessEvents.feed_removed(feed=name)
            removed = True
        return removed

    # ------------------------------------------------------------------
    # 订阅
    # ------------------------------------------------------------------

    def on_load(self, name: str, callback: Callable[[Any], Any]) -> bool:
        return self.subscriptions.on_load(name, callback)

    def on_error(self, name: str, callback: Callable[[BaseException], Any]) -> bool:
        return self.subscriptions.on_error(name, callback)

    def get_data(
        self,
        name: str,
        callback: Callable[[Any], Any],
        on_error: Callable[[BaseException], Any] | None = None,
    ) -> bool | asyncio.Task[None]:
        return self.subscriptions.get_data(name, callback, on_error)

    async def wait_for_data(self, name: str, **kwargs: Any) -> Any:
        return await self.subscriptions.wait_for_data(name, **kwargs)

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def data(self, name: str) -> Any:
        """Last normalized value, or ``MISSING`` when the feed never loaded."""
        state = self.registry.state(name)
        return state.last_value if state is not None else MISSING

    def is_loaded(self, name: str) -> bool:
        state = self.registry.state(name)
        return state is not None and state.has_loaded_once

    @property
    def feeds(self) -> list[str]:
        return self.registry.names()

    def __contains__(self, name: object) -> bool:
        return name in self.registry

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop timers, abandon requests and cancel pending ``get_data`` waits."""
        self.scheduler.disarm_all()
        for state in self.registry.states():
            self.loader.abandon(state)
        self.subscriptions.cancel_all()
        self._closed = True

    async def aclose(self) -> None:
        self.close()
        aclose = getattr(self.transport, "aclose", None)
        if self._owns_transport and aclose is not None:
            await aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _on_refresh_tick(self, name: str) -> None:
        self.reload(name)

    def _ensure_timer(self, name: str) -> None:
        definition = self.registry.get(name)
        if definition is not None and definition.refresh and not self.scheduler.is_armed(name):
            self.scheduler.arm(name, definition.refresh)

    def _notice(self, message: str) -> None:
        logger.log("INFO" if self.config.logging else "DEBUG", message)
