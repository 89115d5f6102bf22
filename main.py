#!/usr/bin/env python3
"""multifeed 运行入口。

读取 JSON 格式的 feed 配置，启动控制器并打印每次加载结果。

使用方式：
    # 运行 60 秒
    python main.py feeds.json --duration 60

    # 只打印指定 feed
    python main.py feeds.json --watch "quotes weather"

配置文件示例：
    {
        "feeds": {
            "quotes": {"url": "https://example.com/quotes.json", "refresh": 1},
            "weather": "https://example.com/weather.json"
        },
        "logging": true,
        "cacheTime": 5
    }
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from multifeed.core.config import settings
from multifeed.core.domain.url_params import split_names
from multifeed.core.infrastructure.logging import get_business_logger, setup_logging
from multifeed.modules.feeds.application.controller import ControllerConfig, FeedController


def load_config(path: Path) -> ControllerConfig:
    """读取配置文件。"""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SystemExit(f"Cannot read config file '{path}': {e}") from e
    except json.JSONDecodeError as e:
        raise SystemExit(f"Config file '{path}' is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise SystemExit(f"Config file '{path}' must contain a JSON object")
    return ControllerConfig.model_validate(raw)


def _printer(name: str, as_json: bool):
    def _print(value: Any) -> None:
        if as_json:
            print(json.dumps({"feed": name, "data": value}, ensure_ascii=False, default=str))
        else:
            print(f"[{name}] {value!r}")

    return _print


def _error_reporter(name: str):
    def _report(error: BaseException) -> None:
        code = getattr(error, "error_code", type(error).__name__)
        logger.warning(f"Feed '{name}' failed ({code}): {error}")

    return _report


async def run(config: ControllerConfig, watch: list[str], duration: float, as_json: bool) -> int:
    async with FeedController(config) as controller:
        names = watch or controller.feeds
        if not names:
            logger.warning("No feeds configured")
            return 1

        for name in names:
            if not controller.on_load(name, _printer(name, as_json)):
                logger.warning(f"Unknown feed '{name}'")
                continue
            controller.on_error(name, _error_reporter(name))

        if not config.init_on_load:
            controller.reload()

        business_log = get_business_logger()
        business_log.info("runner_started", feeds=names, duration_sec=duration)
        await asyncio.sleep(duration)
        business_log.info("runner_stopped", feeds=names)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a multifeed controller")
    parser.add_argument("config", type=Path, help="JSON config file")
    parser.add_argument("--duration", type=float, default=60.0, help="运行秒数")
    parser.add_argument("--watch", default="", help="空格分隔的 feed 名称（默认全部）")
    parser.add_argument("--json", action="store_true", help="JSON 输出")
    args = parser.parse_args()

    setup_logging(settings)
    config = load_config(args.config)
    sys.exit(asyncio.run(run(config, split_names(args.watch), args.duration, args.json)))


if __name__ == "__main__":
    main()
