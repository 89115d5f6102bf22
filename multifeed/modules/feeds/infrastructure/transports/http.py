"""HTTP 传输实现。

支持 json / xml / html / text / script 格式，请求可取消。
"""

import xml.etree.ElementTree as ET
from typing import Any

import httpx

from multifeed.modules.feeds.domain.entities import ResponseFormat
from multifeed.modules.feeds.domain.exceptions import TransportError
from multifeed.modules.feeds.domain.transport import FetchConfig
from multifeed.modules.feeds.infrastructure.transports.base import (
    BaseTransport,
    TaskHandle,
)


class HttpTransport(BaseTransport):
    """Plain HTTP GET transport."""

    def fetch(self, config: FetchConfig) -> TaskHandle:
        return TaskHandle(self._start(config), cancellable=True)

    async def _perform(self, config: FetchConfig) -> None:
        response = await self._get(config)
        self._deliver(config, self.decode(response, config.response_format))

    @staticmethod
    def decode(response: httpx.Response, response_format: ResponseFormat) -> Any:
        """按响应格式解码。"""
        try:
            if response_format is ResponseFormat.JSON:
                return response.json()
            if response_format is ResponseFormat.XML:
                return ET.fromstring(response.content)
        except (ValueError, ET.ParseError) as e:
            # ValueError 覆盖 JSONDecodeError 与非 UTF-8 字节的 UnicodeDecodeError
            raise TransportError(f"Malformed {response_format} response: {e}") from e
        return response.text
