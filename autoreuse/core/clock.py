"""
Clock: 現在時刻の取得を差し替え可能にする抽象

設定キャッシュの有効期限判定や lastUsed の記録で使用する。
テストでは now を任意に進められる実装を注入する。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """現在時刻（タイムゾーン付き UTC）を返すインターフェース。"""

    def now(self) -> datetime:
        ...


class SystemClock:
    """システム時計を使う標準実装。"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
