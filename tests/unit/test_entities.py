"""Feed 领域对象单元测试。

测试覆盖：
- FeedDefinition 构建与格式推断
- JSONP 回调名解析
- MISSING 与 None 的区别
- 缓存时间桶
- URL / 名称列表辅助函数
"""

from datetime import datetime

import pytest

from multifeed.core.domain.url_params import get_query_param, split_names
from multifeed.modules.feeds.domain.cache_bucket import cache_bucket
from multifeed.modules.feeds.domain.entities import (
    MISSING,
    FeedDefinition,
    FeedRuntimeState,
    JsonpHook,
    ResponseFormat,
)
from multifeed.modules.feeds.domain.exceptions import InvalidFeedConfigError

# ============================================
# FeedDefinition 测试
# ============================================


class TestFeedDefinition:
    """FeedDefinition 测试。"""

    def test_from_bare_url(self):
        feed = FeedDefinition.from_config("quotes", "https://example.com/q.json")

        assert feed.name == "quotes"
        assert feed.url == "https://example.com/q.json"
        assert feed.refresh is None
        assert feed.effective_format is ResponseFormat.JSON

    def test_from_mapping_with_camel_case_keys(self):
        normalize = lambda raw: raw["value"]  # noqa: E731
        feed = FeedDefinition.from_config(
            "weather",
            {
                "url": "https://example.com/w",
                "type": "XML",
                "refresh": 5,
                "normalize": normalize,
                "jsonpCallback": "cb=handleWeather",
            },
        )

        assert feed.response_format is ResponseFormat.XML
        assert feed.refresh == 5.0
        assert feed.normalize is normalize
        assert feed.jsonp_callback == "cb=handleWeather"

    def test_normalize_by_feed_name(self):
        feed = FeedDefinition.from_config("b", {"url": "https://x", "normalize": "a"})
        assert feed.normalize == "a"

    def test_missing_url_rejected(self):
        with pytest.raises(InvalidFeedConfigError, match="has no url"):
            FeedDefinition.from_config("broken", {"refresh": 1})

    def test_blank_url_rejected(self):
        with pytest.raises(InvalidFeedConfigError):
            FeedDefinition.from_config("broken", "   ")

    def test_unknown_format_rejected(self):
        with pytest.raises(InvalidFeedConfigError):
            FeedDefinition.from_config("broken", {"url": "https://x", "format": "yaml"})

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidFeedConfigError):
            FeedDefinition.from_config("broken", 42)  # type: ignore[arg-type]

    def test_existing_definition_renamed(self):
        original = FeedDefinition(name="a", url="https://x")
        assert FeedDefinition.from_config("a", original) is original
        assert FeedDefinition.from_config("b", original).name == "b"

    def test_jsonp_inferred_from_option(self):
        feed = FeedDefinition(name="a", url="https://x", jsonp_callback="handle")
        assert feed.effective_format is ResponseFormat.JSONP

    def test_jsonp_inferred_from_url(self):
        feed = FeedDefinition(name="a", url="https://x/data?Callback=handle&v=2")
        assert feed.embedded_callback() == "handle"
        assert feed.effective_format is ResponseFormat.JSONP

    def test_declared_format_used(self):
        feed = FeedDefinition(name="a", url="https://x", response_format="html")
        assert feed.effective_format is ResponseFormat.HTML

    def test_definition_is_frozen(self):
        feed = FeedDefinition(name="a", url="https://x")
        with pytest.raises(Exception):
            feed.url = "https://y"  # type: ignore[misc]

    def test_non_numeric_refresh_kept_for_scheduler(self):
        feed = FeedDefinition.from_config("a", {"url": "https://x", "refresh": "soon"})
        assert feed.refresh == "soon"

    def test_numeric_string_refresh_converted(self):
        feed = FeedDefinition.from_config("a", {"url": "https://x", "refresh": " 2.5 "})
        assert feed.refresh == 2.5

    def test_name_with_whitespace_rejected(self):
        with pytest.raises(InvalidFeedConfigError, match="whitespace"):
            FeedDefinition.from_config("my feed", "https://x")


# ============================================
# JSONP 回调测试
# ============================================


class TestJsonpHook:
    """JsonpHook 解析测试。"""

    def test_default_name(self):
        hook = JsonpHook.for_definition(FeedDefinition(name="news", url="https://x"))
        assert hook == JsonpHook(name="jsonpnews", param="callback")

    def test_param_pair(self):
        feed = FeedDefinition(name="news", url="https://x", jsonp_callback="cb=onNews")
        assert JsonpHook.for_definition(feed) == JsonpHook(name="onNews", param="cb")

    def test_bare_name(self):
        feed = FeedDefinition(name="news", url="https://x", jsonp_callback="onNews")
        assert JsonpHook.for_definition(feed) == JsonpHook(name="onNews", param="callback")

    def test_reused_from_url(self):
        feed = FeedDefinition(name="news", url="https://x?callback=fromUrl")
        hook = JsonpHook.for_definition(feed)
        assert hook.name == "fromUrl"
        assert hook.param is None

    def test_custom_prefix(self):
        hook = JsonpHook.for_definition(FeedDefinition(name="news", url="https://x"), prefix="cb_")
        assert hook.name == "cb_news"


# ============================================
# 运行时状态测试
# ============================================


class TestFeedRuntimeState:
    """FeedRuntimeState 测试。"""

    def test_missing_is_not_none(self):
        state = FeedRuntimeState(name="a")
        assert state.last_value is MISSING
        assert state.has_value is False

        state.last_value = None
        assert state.has_value is True

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"
        assert type(MISSING)() is MISSING

    def test_next_generation_clears_error(self):
        state = FeedRuntimeState(name="a")
        state.last_error = RuntimeError("x")

        assert state.next_generation() == 1
        assert state.last_error is None
        assert state.is_current(1)
        assert not state.is_current(0)


# ============================================
# 缓存时间桶测试
# ============================================


class TestCacheBucket:
    """cache_bucket 测试。"""

    def test_same_slot_same_bucket(self):
        a = cache_bucket(15, datetime(2024, 3, 9, 14, 1))
        b = cache_bucket(15, datetime(2024, 3, 9, 14, 14))
        assert a == b == "20240309140"

    def test_different_slots_differ(self):
        a = cache_bucket(15, datetime(2024, 3, 9, 14, 14))
        b = cache_bucket(15, datetime(2024, 3, 9, 14, 15))
        assert a != b

    def test_different_hours_differ(self):
        a = cache_bucket(60, datetime(2024, 3, 9, 14, 30))
        b = cache_bucket(60, datetime(2024, 3, 9, 15, 30))
        assert a != b

    def test_no_collision_between_month_and_day(self):
        a = cache_bucket(5, datetime(2024, 1, 11, 3, 0))
        b = cache_bucket(5, datetime(2024, 11, 1, 3, 0))
        assert a != b

    def test_without_granularity_hourly(self):
        assert cache_bucket(None, datetime(2024, 3, 9, 14, 59)) == "2024030914"


# ============================================
# 辅助函数测试
# ============================================


class TestUrlParams:
    """URL 与名称列表辅助函数测试。"""

    def test_get_query_param_case_insensitive(self):
        assert get_query_param("https://x/a?CALLBACK=fn%20x", "callback") == "fn x"

    def test_get_query_param_missing(self):
        assert get_query_param("https://x/a", "callback") is None
        assert get_query_param("https://x/a?cb=1", "callback") is None

    def test_split_names_whitespace(self):
        assert split_names("  a   b\tc \n") == ["a", "b", "c"]

    def test_split_names_iterable(self):
        assert split_names(["a", "b c", ""]) == ["a", "b", "c"]

    def test_split_names_none(self):
        assert split_names(None) == []
