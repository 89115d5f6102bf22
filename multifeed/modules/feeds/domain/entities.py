"""Feed domain entities."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from multifeed.core.domain.url_params import get_query_param
from multifeed.modules.feeds.domain.exceptions import InvalidFeedConfigError

if TYPE_CHECKING:
    from multifeed.modules.feeds.domain.transport import TransportHandle

JSONP_QUERY_PARAM: Final = "callback"

Normalizer = Callable[[Any], Any]
FeedCallback = Callable[[Any], Any]


class ResponseFormat(StrEnum):
    """Response format enum."""

    JSON = "json"
    JSONP = "jsonp"
    XML = "xml"
    HTML = "html"
    TEXT = "text"
    SCRIPT = "script"


class _Missing:
    """Marker for a feed that has never produced a value (``None`` is a real value)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


@dataclass(frozen=True)
class JsonpHook:
    """A uniquely named completion hook requested for a JSONP feed.

    ``param`` is the query parameter carrying the hook name; it is ``None``
    when the source URL already embeds the callback.
    """

    name: str
    param: str | None = JSONP_QUERY_PARAM

    @classmethod
    def for_definition(cls, definition: FeedDefinition, prefix: str = "jsonp") -> JsonpHook:
        in_url = definition.embedded_callback()
        option = definition.jsonp_callback

        if option and option.count("=") == 1:
            param, name = option.split("=")
        elif option:
            param, name = JSONP_QUERY_PARAM, option
        elif in_url:
            param, name = JSONP_QUERY_PARAM, in_url
        else:
            param, name = JSONP_QUERY_PARAM, f"{prefix}{definition.name}"

        return cls(name=name, param=None if in_url else param)


class FeedDefinition(BaseModel):
    """Feed definition - 一个命名数据源的声明式配置。"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Feed 名称（唯一）")
    url: str = Field(..., min_length=1, description="源地址")
    response_format: ResponseFormat | None = Field(default=None, description="响应格式")
    refresh: Any = Field(default=None, description="刷新间隔（分钟），无效值由调度器拒绝")
    normalize: Normalizer | str | None = Field(default=None, description="归一化函数或复用的 feed 名")
    jsonp_callback: str | None = Field(default=None, description="JSONP 回调：'param=name' 或名称")

    @field_validator("name", "url", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("name")
    @classmethod
    def _single_token_name(cls, value: str) -> str:
        # reload / remove_feed 以空白分隔名称
        if any(ch.isspace() for ch in value):
            raise ValueError("feed name must not contain whitespace")
        return value

    @field_validator("refresh", mode="before")
    @classmethod
    def _numeric_refresh(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return value
        return value

    @field_validator("response_format", mode="before")
    @classmethod
    def _lower_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    def embedded_callback(self) -> str | None:
        """Callback name already present in the source URL, if any."""
        return get_query_param(self.url, JSONP_QUERY_PARAM)

    @property
    def effective_format(self) -> ResponseFormat:
        if self.jsonp_callback or self.embedded_callback():
            return ResponseFormat.JSONP
        return self.response_format or ResponseFormat.JSON

    @classmethod
    def from_config(cls, name: str, raw: str | Mapping[str, Any] | FeedDefinition) -> FeedDefinition:
        """Build a definition from a bare URL, a config mapping or another definition.

        Raises:
            InvalidFeedConfigError: the entry cannot describe a feed
        """
        if isinstance(raw, FeedDefinition):
            return raw if raw.name == name else raw.model_copy(update={"name": name})

        if isinstance(raw, str):
            data: dict[str, Any] = {"url": raw}
        elif isinstance(raw, Mapping):
            data = {
                "url": raw.get("url"),
                "response_format": raw.get("format", raw.get("response_format", raw.get("type"))),
                "refresh": raw.get("refresh"),
                "normalize": raw.get("normalize"),
                "jsonp_callback": raw.get("jsonp_callback", raw.get("jsonpCallback")),
            }
        else:
            raise InvalidFeedConfigError(f"feed '{name}' must be a URL string or a mapping")

        if not data.get("url"):
            raise InvalidFeedConfigError(f"feed '{name}' has no url")

        try:
            return cls(name=name, **data)
        except PydanticValidationError as e:
            raise InvalidFeedConfigError(f"feed '{name}': {e.errors()[0]['msg']}") from e


@dataclass(eq=False)
class FeedRuntimeState:
    """Per-feed mutable state, created on registration and dropped on removal."""

    name: str
    last_value: Any = MISSING
    has_loaded_once: bool = False
    subscribers: list[FeedCallback] = field(default_factory=list)
    error_subscribers: list[Callable[[BaseException], Any]] = field(default_factory=list)
    pending: TransportHandle | None = None
    timer: asyncio.Task[None] | None = None
    generation: int = 0
    last_error: BaseException | None = None
    load_count: int = 0
    last_loaded_at: datetime | None = None

    @property
    def has_value(self) -> bool:
        return self.last_value is not MISSING

    def next_generation(self) -> int:
        self.generation += 1
        self.last_error = None
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation
