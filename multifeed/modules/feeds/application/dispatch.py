"""Subscriber invocation helpers."""

import asyncio
import inspect
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

_background_tasks: set[asyncio.Task[Any]] = set()


def invoke(callback: Callable[[Any], Any], value: Any, feed: str) -> None:
    """Call one subscriber; errors are logged and never propagate.

    Coroutine subscribers are scheduled on the running loop.
    """
    try:
        result = callback(value)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            _background_tasks.add(task)
            task.add_done_callback(lambda t: _finish_background(t, feed))
    except Exception as e:
        logger.exception(f"Subscriber {_name_of(callback)} failed for feed '{feed}': {e}")


def fan_out(callbacks: Iterable[Callable[[Any], Any]], value: Any, feed: str) -> int:
    """Invoke subscribers in registration order. Returns how many were called."""
    count = 0
    for callback in list(callbacks):
        invoke(callback, value, feed)
        count += 1
    return count


def _finish_background(task: asyncio.Task[Any], feed: str) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.opt(exception=error).error(f"Async subscriber failed for feed '{feed}': {error}")


def _name_of(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)
