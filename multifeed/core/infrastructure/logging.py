"""Logging configuration with structlog integration.

提供两种日志记录方式：
1. loguru: 用于一般调试日志
2. structlog: 用于关键业务事件的结构化日志
"""

import sys
from typing import Any

import structlog
from loguru import logger

from multifeed.core.config import Settings, settings


def setup_logging(config: Settings | None = None) -> None:
    """Configure application logging with structlog and loguru."""
    config = config or settings

    # 配置 structlog
    _configure_structlog(config)

    # 配置 loguru
    _configure_loguru(config)

    logger.info(f"Logging configured with level: {config.LOG_LEVEL}")


def _configure_structlog(config: Settings) -> None:
    """配置 structlog 处理器链。"""
    # 根据环境选择渲染器
    if config.ENVIRONMENT == "local":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(config.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru(config: Settings) -> None:
    """配置 loguru。"""
    logger.remove()

    logger.add(
        sys.stderr,
        level=config.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )


def _get_log_level_number(level: str) -> int:
    """将日志级别字符串转换为数字。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件日志记录器
# ============================================================================


def get_business_logger() -> structlog.BoundLogger:
    """获取业务事件日志记录器。

    Usage:
        log = get_business_logger()
        log.info("feed_reloaded", feed="quotes", trigger="timer")
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """Feed 生命周期事件日志助手类。

    Usage:
        BusinessEvents.feed_added(feed="quotes", url="https://...")
        BusinessEvents.feed_loaded(feed="quotes", generation=3)
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def feed_added(cls, feed: str, url: str, **extra: Any) -> None:
        cls._log.info("feed_added", event_type="registry", feed=feed, url=url, **extra)

    @classmethod
    def feed_removed(cls, feed: str, **extra: Any) -> None:
        cls._log.info("feed_removed", event_type="registry", feed=feed, **extra)

    @classmethod
    def refresh_armed(cls, feed: str, interval_minutes: float, **extra: Any) -> None:
        cls._log.info(
            "refresh_armed",
            event_type="schedule",
            feed=feed,
            interval_minutes=interval_minutes,
            **extra,
        )

    @classmethod
    def feed_loaded(
        cls,
        feed: str,
        generation: int,
        subscribers: int,
        **extra: Any,
    ) -> None:
        """记录一次成功加载。"""
        cls._log.info(
            "feed_loaded",
            event_type="load",
            feed=feed,
            generation=generation,
            subscribers=subscribers,
            **extra,
        )

    @classmethod
    def feed_load_failed(
        cls,
        feed: str,
        generation: int,
        error: BaseException,
        **extra: Any,
    ) -> None:
        """记录一次失败加载。"""
        cls._log.warning(
            "feed_load_failed",
            event_type="load",
            feed=feed,
            generation=generation,
            error_type=type(error).__name__,
            error=str(error),
            **extra,
        )

    @classmethod
    def stale_completion_discarded(
        cls,
        feed: str,
        generation: int,
        current_generation: int | None,
        **extra: Any,
    ) -> None:
        """记录被丢弃的过期响应。"""
        cls._log.debug(
            "stale_completion_discarded",
            event_type="load",
            feed=feed,
            generation=generation,
            current_generation=current_generation,
            **extra,
        )
