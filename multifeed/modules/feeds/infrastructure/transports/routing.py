"""按响应格式路由的默认传输。"""

import httpx

from multifeed.modules.feeds.domain.entities import ResponseFormat
from multifeed.modules.feeds.domain.transport import FetchConfig
from multifeed.modules.feeds.infrastructure.transports.base import TaskHandle
from multifeed.modules.feeds.infrastructure.transports.http import HttpTransport
from multifeed.modules.feeds.infrastructure.transports.jsonp import JsonpTransport


class RoutingTransport:
    """Sends JSONP configs to the script transport and everything else over plain HTTP.

    Both adapters share one ``AsyncClient``.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.http = HttpTransport(client)
        self.jsonp = JsonpTransport(self.http.client)

    def fetch(self, config: FetchConfig) -> TaskHandle:
        if config.response_format is ResponseFormat.JSONP:
            return self.jsonp.fetch(config)
        return self.http.fetch(config)

    @property
    def in_flight(self) -> int:
        return self.http.in_flight + self.jsonp.in_flight

    async def aclose(self) -> None:
        await self.jsonp.aclose()
        await self.http.aclose()
