"""
PreferenceCache のユニットテスト

テスト対象:
  - preference_key(): キー形式
  - expiry_for(): duration / times / 既定の有効期限
  - get(): 期限切れ項目の削除
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from autoreuse.core.preferences import DEFAULT_TTL, NEVER_EXPIRES, PreferenceCache, preference_key
from autoreuse.models.schema import ReusePreference


class TestPreferenceKey:
    """preference_key() のテスト。"""

    def test_with_website(self):
        assert preference_key("search", "example.com") == "search:example.com"

    def test_without_website(self):
        assert preference_key("search", None) == "search:any"

    def test_empty_website_is_any(self):
        assert preference_key("search", "") == "search:any"


class TestExpiry:
    """有効期限計算のテスト。"""

    def test_default_is_24_hours(self, clock):
        cache = PreferenceCache(clock)
        entry = cache.set("k", ReusePreference(action="reuse"))
        assert entry.until == clock.now() + DEFAULT_TTL
        assert DEFAULT_TTL == timedelta(hours=24)

    def test_duration_is_minutes(self, clock):
        cache = PreferenceCache(clock)
        pref = ReusePreference(action="skip", doNotAskFor={"type": "duration", "value": 30})
        assert cache.set("k", pref).until == clock.now() + timedelta(minutes=30)

    def test_times_is_hours(self, clock):
        """times は回数ではなく 1回 = 1時間として扱うこと。"""
        cache = PreferenceCache(clock)
        pref = ReusePreference(action="reuse", doNotAskFor={"type": "times", "value": 3})
        assert cache.set("k", pref).until == clock.now() + timedelta(hours=3)

    @pytest.mark.parametrize(
        "do_not_ask",
        [{"type": "times", "value": 1e8}, {"type": "duration", "value": 1e300}],
    )
    def test_unrepresentable_expiry_never_expires(self, clock, do_not_ask):
        """datetime の範囲を超える期限は NEVER_EXPIRES に丸められること。"""
        cache = PreferenceCache(clock)
        pref = ReusePreference(action="skip", doNotAskFor=do_not_ask)
        assert cache.set("k", pref).until == NEVER_EXPIRES
        clock.advance(days=365 * 100)
        assert cache.get("k") == pref


class TestGet:
    """get() のテスト。"""

    def test_missing_key(self, clock):
        assert PreferenceCache(clock).get("nothing") is None

    def test_valid_until_expiry_inclusive(self, clock):
        """期限ちょうどの時刻はまだ有効であること。"""
        cache = PreferenceCache(clock)
        pref = ReusePreference(action="skip", doNotAskFor={"type": "duration", "value": 1})
        cache.set("k", pref)
        clock.advance(minutes=1)
        assert cache.get("k") == pref

    def test_expired_entry_is_removed(self, clock):
        cache = PreferenceCache(clock)
        cache.set("k", ReusePreference(action="skip", doNotAskFor={"type": "duration", "value": 1}))
        clock.advance(minutes=1, seconds=1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_overwrites(self, clock):
        cache = PreferenceCache(clock)
        cache.set("k", ReusePreference(action="skip"))
        cache.set("k", ReusePreference(action="reuse"))
        assert cache.get("k").action == "reuse"
        assert len(cache) == 1

    def test_clear(self, clock):
        cache = PreferenceCache(clock)
        cache.set("a", ReusePreference(action="skip"))
        cache.set("b", ReusePreference(action="reuse"))
        cache.clear()
        assert len(cache) == 0
        assert cache.get("a") is None
