"""Feed 传输层实现。"""

from multifeed.modules.feeds.infrastructure.transports.base import (
    BaseTransport,
    TaskHandle,
)
from multifeed.modules.feeds.infrastructure.transports.http import HttpTransport
from multifeed.modules.feeds.infrastructure.transports.jsonp import (
    CallbackRegistry,
    JsonpTransport,
    parse_script_call,
)
from multifeed.modules.feeds.infrastructure.transports.routing import RoutingTransport

__all__ = [
    "BaseTransport",
    "CallbackRegistry",
    "HttpTransport",
    "JsonpTransport",
    "RoutingTransport",
    "TaskHandle",
    "parse_script_call",
]
