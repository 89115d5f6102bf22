"""JSONP 传输实现。

脚本响应形如 ``hookName({...});``。传输层维护一个按回调名索引的注册表，
解析出回调名后把负载分发给注册的回调。JSONP 请求不可取消。
"""

import json
import re
from collections.abc import Callable
from typing import Any

from loguru import logger

from multifeed.modules.feeds.domain.exceptions import TransportError
from multifeed.modules.feeds.domain.transport import FetchConfig
from multifeed.modules.feeds.infrastructure.transports.base import (
    BaseTransport,
    TaskHandle,
)

_SCRIPT_CALL = re.compile(
    r"^\s*(?:/\*\*/\s*)?(?:typeof\s+[\w$.]+\s*===?\s*['\"]function['\"]\s*&&\s*)?"
    r"(?P<name>[\w$.]+)\s*\((?P<payload>.*)\)\s*;?\s*$",
    re.DOTALL,
)


class CallbackRegistry:
    """Named completion hooks for script responses."""

    def __init__(self) -> None:
        self._hooks: dict[str, Callable[[Any], None]] = {}

    def register(self, name: str, callback: Callable[[Any], None]) -> None:
        self._hooks[name] = callback

    def unregister(self, name: str, callback: Callable[[Any], None] | None = None) -> None:
        if callback is None or self._hooks.get(name) is callback:
            self._hooks.pop(name, None)

    def get(self, name: str) -> Callable[[Any], None] | None:
        return self._hooks.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)


def parse_script_call(body: str) -> tuple[str, Any]:
    """Split a JSONP body into the hook name and its decoded argument."""
    match = _SCRIPT_CALL.match(body)
    if match is None:
        raise TransportError("Response is not a JSONP callback invocation")

    payload = match.group("payload").strip()
    try:
        data = json.loads(payload) if payload else None
    except json.JSONDecodeError as e:
        raise TransportError(f"Malformed JSONP payload: {e}") from e
    return match.group("name"), data


class JsonpTransport(BaseTransport):
    """Script-injected callback transport."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.callbacks = CallbackRegistry()

    def fetch(self, config: FetchConfig) -> TaskHandle:
        if config.jsonp is None:
            raise TransportError(f"JSONP fetch for {config.url} needs a completion hook")

        self.callbacks.register(config.jsonp.name, config.on_success)
        return TaskHandle(self._start(config), cancellable=False)

    async def _perform(self, config: FetchConfig) -> None:
        if config.jsonp is None:
            raise TransportError(f"JSONP fetch for {config.url} needs a completion hook")

        try:
            response = await self._get(config)
            name, data = parse_script_call(response.text)
        except Exception:
            self.callbacks.unregister(config.jsonp.name, config.on_success)
            raise

        if name != config.jsonp.name:
            logger.debug(f"JSONP response for {config.url} calls '{name}', expected '{config.jsonp.name}'")

        # 只有仍注册着本次请求的回调时才分发，被新请求覆盖的响应直接丢弃
        if self.callbacks.get(name) is not config.on_success:
            logger.debug(f"JSONP hook '{name}' superseded or missing; payload dropped")
            return

        self.callbacks.unregister(name, config.on_success)
        self._deliver(config, data)
