"""
DecisionEngine: 自動化リクエストに対する再利用／新規記録の判定

判定の流れ（1リクエストにつき1回、途中状態は保持しない）:
  1. リクエストから検索条件を導出（minConfidence は 0.5 固定）
  2. ユーザー設定を参照
       skip / record-new → 即座に record-new
       reuse / なし       → 検索へ進む
  3. ストアを検索
       0件                      → record-new
       1件以上かつ設定が reuse  → execute（先頭候補を自動実行）
       1件以上かつ設定なし      → reuse-prompt（先頭候補と件数を提示）

ストアの例外はそのまま呼び出し側へ伝播する（リトライしない）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from ..models.events import AutomationRequestedEvent
from ..models.schema import AutomationSearchCriteria, StoredAutomation
from ..storage.base import AutomationStorage
from .preferences import PreferenceCache, preference_key

logger = logging.getLogger(__name__)

MIN_RELEVANT_CONFIDENCE = 0.5
"""判定時の検索で使う信頼度の下限。"""


@dataclass
class Decision:
    """判定結果。

    Attributes:
        action: execute / reuse-prompt / record-new
        message: 判定理由
        automation: 採用候補（record-new の場合は None）
        match_count: 検索でヒットした件数
    """

    action: Literal["execute", "reuse-prompt", "record-new"]
    message: str
    automation: Optional[StoredAutomation] = None
    match_count: int = 0


def build_search_criteria(request: AutomationRequestedEvent) -> AutomationSearchCriteria:
    """リクエストから検索条件を導出する。

    必須パラメータは指定された全パラメータの名前。
    """
    return AutomationSearchCriteria(
        eventType=request.type,
        action=request.action,
        website=request.website,
        parameters=list(request.parameters.keys()),
        context=request.context,
        minConfidence=MIN_RELEVANT_CONFIDENCE,
    )


class DecisionEngine:
    """ユーザー設定 → ストア検索 → 判定 の順に処理するエンジン。"""

    def __init__(self, storage: AutomationStorage, preferences: PreferenceCache) -> None:
        self._storage = storage
        self._preferences = preferences

    async def decide(self, request: AutomationRequestedEvent) -> Decision:
        """リクエストに対する判定を返す。

        Raises:
            TypeError: AutomationRequestedEvent 以外が渡された場合
            StorageUnavailableError: ストアの検索に失敗した場合
        """
        if not isinstance(request, AutomationRequestedEvent):
            raise TypeError(
                f"AutomationRequestedEvent が必要です: {type(request).__name__}"
            )

        criteria = build_search_criteria(request)
        key = preference_key(request.action, request.website)
        preference = self._preferences.get(key)

        if preference is not None:
            if preference.action == "skip":
                return self._log(key, Decision("record-new", "User preference: skip automation"))
            if preference.action == "record-new":
                return self._log(key, Decision("record-new", "User preference: always record new"))

        matches = await self._storage.find_matching(criteria)

        if not matches:
            return self._log(key, Decision("record-new", "No existing automation found for this action"))

        if preference is not None and preference.action == "reuse":
            return self._log(key, Decision(
                "execute",
                "Executing stored automation based on user preference",
                automation=matches[0],
                match_count=len(matches),
            ))

        return self._log(key, Decision(
            "reuse-prompt",
            f"Found {len(matches)} matching automation(s)",
            automation=matches[0],
            match_count=len(matches),
        ))

    @staticmethod
    def _log(key: str, decision: Decision) -> Decision:
        logger.info(
            "判定: %s → %s (%s)",
            key,
            decision.action,
            decision.automation.id if decision.automation else "-",
        )
        return decision
