"""multifeed - 多数据源定时抓取与分发控制器。"""

from multifeed.modules.feeds.application.controller import ControllerConfig, FeedController
from multifeed.modules.feeds.domain.entities import MISSING, FeedDefinition, ResponseFormat

__all__ = [
    "MISSING",
    "ControllerConfig",
    "FeedController",
    "FeedDefinition",
    "ResponseFormat",
]

__version__ = "0.1.0"
