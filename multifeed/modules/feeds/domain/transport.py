"""Transport domain interfaces and models."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from multifeed.modules.feeds.domain.entities import JsonpHook, ResponseFormat

SuccessCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]


@dataclass(frozen=True)
class FetchConfig:
    """一次抓取的传输配置。"""

    url: str
    response_format: ResponseFormat
    on_success: SuccessCallback
    on_error: ErrorCallback | None = None
    cache: bool = True
    params: dict[str, str] = field(default_factory=dict)
    jsonp: JsonpHook | None = None


class TransportHandle(Protocol):
    """Handle for one in-flight request."""

    @property
    def cancellable(self) -> bool: ...

    def cancel(self) -> None: ...


class Transport(Protocol):
    """Performs one network call per config and reports through its callbacks."""

    def fetch(self, config: FetchConfig) -> TransportHandle: ...
