"""传输层基类定义。

每个请求在事件循环上作为独立任务运行，完成后通过 FetchConfig 上的回调
交付结果；回调中的异常不会逃出任务边界。
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from loguru import logger

from multifeed.core.config import settings
from multifeed.modules.feeds.domain.entities import ResponseFormat
from multifeed.modules.feeds.domain.exceptions import TransportError
from multifeed.modules.feeds.domain.transport import FetchConfig

ACCEPT_HEADERS = {
    ResponseFormat.JSON: "application/json, text/javascript, */*",
    ResponseFormat.JSONP: "text/javascript, application/javascript, */*",
    ResponseFormat.XML: "application/xml, text/xml, */*",
    ResponseFormat.HTML: "text/html, */*",
    ResponseFormat.TEXT: "text/plain, */*",
    ResponseFormat.SCRIPT: "text/javascript, application/javascript, */*",
}


class TaskHandle:
    """Handle backed by an asyncio task."""

    def __init__(self, task: asyncio.Task[None], cancellable: bool = True):
        self.task = task
        self._cancellable = cancellable

    @property
    def cancellable(self) -> bool:
        return self._cancellable

    @property
    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> None:
        if self._cancellable:
            self.task.cancel()


class BaseTransport(ABC):
    """Shared plumbing for httpx-backed transports.

    The transport owns its ``AsyncClient`` unless one is passed in.
    """

    TIMEOUT = settings.HTTP_TIMEOUT_SEC
    USER_AGENT = settings.HTTP_USER_AGENT

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._owns_client = client is None
        self._client = client
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.TIMEOUT,
                follow_redirects=settings.HTTP_FOLLOW_REDIRECTS,
                headers={"User-Agent": self.USER_AGENT},
            )
        return self._client

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @abstractmethod
    async def _perform(self, config: FetchConfig) -> None: ...

    def _start(self, config: FetchConfig) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._run(config))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, config: FetchConfig) -> None:
        start_time = time.time()
        try:
            await self._perform(config)
        except httpx.TimeoutException as e:
            logger.warning(f"Fetch timeout for {config.url}: {e}")
            self._report_error(config, TransportError(f"Timeout: {e}"))
        except httpx.HTTPStatusError as e:
            logger.warning(f"Fetch HTTP error for {config.url}: {e.response.status_code}")
            self._report_error(config, TransportError(f"HTTP {e.response.status_code}"))
        except httpx.HTTPError as e:
            logger.warning(f"Fetch error for {config.url}: {e}")
            self._report_error(config, TransportError(f"Error: {e}"))
        except TransportError as e:
            logger.warning(f"Fetch error for {config.url}: {e}")
            self._report_error(config, e)
        except Exception as e:
            logger.exception(f"Fetch error for {config.url}: {e}")
            self._report_error(config, TransportError(f"Error: {e}"))
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.debug(f"Fetch finished for {config.url} in {duration_ms}ms")

    async def _get(self, config: FetchConfig) -> httpx.Response:
        params = dict(config.params)
        if not config.cache:
            params["_"] = str(int(time.time() * 1000))

        response = await self.client.get(
            config.url,
            params=params or None,
            headers={"Accept": ACCEPT_HEADERS.get(config.response_format, "*/*")},
        )
        response.raise_for_status()
        return response

    def _deliver(self, config: FetchConfig, payload: Any) -> None:
        try:
            config.on_success(payload)
        except Exception as e:
            logger.exception(f"Completion callback failed for {config.url}: {e}")
            self._report_error(config, e)

    def _report_error(self, config: FetchConfig, error: BaseException) -> None:
        if config.on_error is None:
            return
        try:
            config.on_error(error)
        except Exception as e:
            logger.exception(f"Error callback failed for {config.url}: {e}")

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
