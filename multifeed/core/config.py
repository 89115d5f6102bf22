"""Application configuration."""

from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "multifeed"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Feed scheduling
    FEED_MIN_REFRESH_MINUTES: float = 0.5  # 30 秒
    FEED_REFRESH_UNIT_SECONDS: float = 60.0  # 一个刷新单位（分钟）对应的秒数
    FEED_POLL_INTERVAL_MS: int = 250
    FEED_POLL_MAX_ATTEMPTS: int = 120  # 120 * 250ms ≈ 30 秒
    FEED_CACHE_PARAM: str = "cb"

    # JSONP
    JSONP_NAME_PREFIX: str = "jsonp"  # 默认回调名前缀：jsonp<feed>

    # HTTP transport
    HTTP_TIMEOUT_SEC: float = 30.0
    HTTP_FOLLOW_REDIRECTS: bool = True
    HTTP_USER_AGENT: str = "Mozilla/5.0 (compatible; multifeed/0.1)"

    @computed_field
    @property
    def poll_interval_sec(self) -> float:
        """getData 轮询间隔（秒）。"""
        return self.FEED_POLL_INTERVAL_MS / 1000


settings = Settings()
