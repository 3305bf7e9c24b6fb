"""
PreferenceCache: 期限付きのユーザー再利用設定

(action, website) ごとのユーザー判断（reuse / record-new / skip）を
一定時間だけ記憶する。期限切れの項目は get() 時に削除され、
バックグラウンドでの掃除は行わない。

有効期限（set 時に計算）:
  - doNotAskFor.type == "duration": value 分後
  - doNotAskFor.type == "times"   : value 時間後
      回数を数える代わりに 1回 = 1時間 として近似している。
      「次の N 回のリクエストまで」という厳密な意味ではない。
  - doNotAskFor なし               : 24 時間後
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..models.schema import ReusePreference
from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

NEVER_EXPIRES = datetime.max.replace(tzinfo=timezone.utc)
"""表現可能な範囲を超える期限の代わりに使う時刻。"""


def preference_key(action: str, website: Optional[str]) -> str:
    """設定キー "{action}:{website|'any'}" を返す。"""
    return f"{action}:{website or 'any'}"


@dataclass
class PreferenceEntry:
    """キャッシュ内の1項目。

    Attributes:
        preference: ユーザー判断
        until: 有効期限（この時刻を過ぎると無効）
    """

    preference: ReusePreference
    until: datetime


class PreferenceCache:
    """ロックで保護された期限付き設定マップ。

    get() の期限判定と削除、set() の上書きは同じロックの下で行う。
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or SystemClock()
        self._entries: dict[str, PreferenceEntry] = {}
        self._lock = threading.Lock()

    def expiry_for(self, preference: ReusePreference, now: datetime) -> datetime:
        """設定の有効期限を計算する。

        datetime で表せないほど遠い期限は NEVER_EXPIRES に丸める。
        """
        do_not_ask = preference.doNotAskFor
        if do_not_ask is None:
            return now + DEFAULT_TTL
        try:
            if do_not_ask.type == "duration":
                return now + timedelta(minutes=do_not_ask.value)
            # times は回数ではなく時間で近似する
            return now + timedelta(hours=do_not_ask.value)
        except OverflowError:
            return NEVER_EXPIRES

    def set(self, key: str, preference: ReusePreference) -> PreferenceEntry:
        """設定を保存する。同じキーの既存設定は上書きされる。"""
        now = self._clock.now()
        entry = PreferenceEntry(preference=preference, until=self.expiry_for(preference, now))
        with self._lock:
            self._entries[key] = entry
        logger.info("ユーザー設定を保存しました: %s → %s（期限 %s）", key, preference.action, entry.until)
        return entry

    def get(self, key: str) -> Optional[ReusePreference]:
        """有効な設定を返す。なし・期限切れの場合は None（期限切れは削除する）。"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("ユーザー設定なし: %s", key)
                return None
            if self._clock.now() > entry.until:
                del self._entries[key]
                logger.debug("ユーザー設定の期限切れ: %s", key)
                return None
        logger.debug("ユーザー設定ヒット: %s → %s", key, entry.preference.action)
        return entry.preference

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
