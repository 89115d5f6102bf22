"""Feed 加载器。

负责单个 feed 的一次抓取周期：
- 构建传输配置（格式选项、缓存参数、JSONP 回调）
- 取消尚未完成的上一次请求
- 调用传输层并保存句柄
- 完成后归一化、存储、通知订阅者

每次请求都带有递增的 generation，只接受最新一次请求的结果。
"""

from datetime import UTC, datetime
from typing import Any

from loguru import logger

from multifeed.core.infrastructure.logging import BusinessEvents
from multifeed.modules.feeds.application.dispatch import fan_out
from multifeed.modules.feeds.application.registry import FeedRegistry
from multifeed.modules.feeds.domain.cache_bucket import cache_bucket
from multifeed.modules.feeds.domain.entities import (
    FeedDefinition,
    FeedRuntimeState,
    JsonpHook,
    ResponseFormat,
)
from multifeed.modules.feeds.domain.transport import FetchConfig, Transport


class FeedLoader:
    """Runs fetch cycles for registered feeds."""

    def __init__(
        self,
        registry: FeedRegistry,
        transport: Transport,
        cache_time: float | None = None,
        cache_param: str = "cb",
        jsonp_prefix: str = "jsonp",
    ):
        self.registry = registry
        self.transport = transport
        self.cache_time = cache_time
        self.cache_param = cache_param
        self.jsonp_prefix = jsonp_prefix

    def load(self, name: str) -> bool:
        """Start one fetch for ``name``.

        Returns False for unknown feeds and when the transport refuses the
        fetch; a refusal is reported through the failure channel.
        """
        definition = self.registry.get(name)
        state = self.registry.state(name)
        if definition is None or state is None:
            return False

        generation = state.next_generation()
        config = self.build_config(definition, state, generation)

        self._cancel_pending(state)
        state.pending = None
        try:
            state.pending = self.transport.fetch(config)
        except Exception as e:
            logger.warning(f"Transport refused fetch for feed '{name}': {e}")
            self._fail(state, generation, e)
            return False
        logger.debug(f"Fetch issued for feed '{name}' (generation {generation})")
        return True

    def build_config(
        self,
        definition: FeedDefinition,
        state: FeedRuntimeState,
        generation: int,
    ) -> FetchConfig:
        response_format = definition.effective_format
        params: dict[str, str] = {}
        jsonp: JsonpHook | None = None

        if response_format is ResponseFormat.JSONP:
            jsonp = JsonpHook.for_definition(definition, prefix=self.jsonp_prefix)
            if jsonp.param:
                params[jsonp.param] = jsonp.name

        if self.cache_time:
            params[self.cache_param] = cache_bucket(self.cache_time)

        return FetchConfig(
            url=definition.url,
            response_format=response_format,
            on_success=lambda raw: self._complete(state, generation, raw),
            on_error=lambda error: self._fail(state, generation, error),
            cache=True,
            params=params,
            jsonp=jsonp,
        )

    def abandon(self, state: FeedRuntimeState) -> None:
        """Drop the in-flight request of a feed being torn down."""
        self._cancel_pending(state)
        state.pending = None

    def _cancel_pending(self, state: FeedRuntimeState) -> None:
        handle = state.pending
        if handle is None or not handle.cancellable:
            return
        try:
            handle.cancel()
        except Exception as e:
            # 尽力取消，失败不影响新请求
            logger.debug(f"Cancel failed for feed '{state.name}': {e}")

    def _accepts(self, state: FeedRuntimeState, generation: int) -> bool:
        if self.registry.state(state.name) is not state:
            BusinessEvents.stale_completion_discarded(
                feed=state.name, generation=generation, current_generation=None
            )
            return False
        if not state.is_current(generation):
            BusinessEvents.stale_completion_discarded(
                feed=state.name,
                generation=generation,
                current_generation=state.generation,
            )
            return False
        return True

    def _complete(self, state: FeedRuntimeState, generation: int, raw: Any) -> None:
        if not self._accepts(state, generation):
            return

        definition = self.registry.get(state.name)
        normalizer = self.registry.resolve_normalizer(definition) if definition else None
        try:
            value = normalizer(raw) if normalizer else raw
        except Exception as e:
            logger.warning(f"Normalization failed for feed '{state.name}': {e}")
            self._fail(state, generation, e)
            return

        state.last_value = value
        state.has_loaded_once = True
        state.pending = None
        state.load_count += 1
        state.last_loaded_at = datetime.now(UTC)

        notified = fan_out(state.subscribers, value, state.name)
        BusinessEvents.feed_loaded(feed=state.name, generation=generation, subscribers=notified)

    def _fail(self, state: FeedRuntimeState, generation: int, error: BaseException) -> None:
        if not self._accepts(state, generation):
            return

        state.last_error = error
        state.pending = None
        BusinessEvents.feed_load_failed(feed=state.name, generation=generation, error=error)
        fan_out(state.error_subscribers, error, state.name)
