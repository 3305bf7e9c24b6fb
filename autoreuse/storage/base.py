"""
ストレージ共通定義: インターフェース・インデックス選択・フィルタ・ランキング

全バックエンド（SQLite / メモリ）はこのモジュールの関数で検索結果を
絞り込み・整列することで、同一の呼び出し列に対して同一の結果を返す。
バックエンドごとに異なるのはインデックス経路での候補取得方法と永続性のみ。

検索の流れ:
  1. select_index_path(): 最も具体的なインデックス経路を1つ選ぶ
     （action+website → action → website → eventType → 全件）
  2. apply_filters(): 必須パラメータ包含 → 信頼度下限 → コンテキスト照合
  3. rank_automations(): 信頼度降順。差が 0.1 以下なら useCount 降順
"""

from __future__ import annotations

import enum
import logging
from functools import cmp_to_key
from typing import Any, Iterable, Mapping, Optional, Protocol, runtime_checkable

from pydantic_core import to_jsonable_python

from ..core.patterns import wildcard_match
from ..models.schema import AutomationSearchCriteria, StoredAutomation

logger = logging.getLogger(__name__)

CONFIDENCE_STEP = 0.05
"""再利用1回あたりの信頼度上昇幅。"""

CONFIDENCE_TIE_EPSILON = 0.1
"""この差以下の信頼度は同点とみなし useCount で順位を決める。"""


# ---------------------------------------------------------------------------
# ストレージ Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class AutomationStorage(Protocol):
    """自動化ストアの共通インターフェース。

    全メソッドは非同期。バックエンドは呼び出し側が明示的に選択・生成する。
    """

    async def save(self, automation: StoredAutomation) -> None:
        """id をキーに upsert する。"""
        ...

    async def find_matching(self, criteria: AutomationSearchCriteria) -> list[StoredAutomation]:
        """条件に合う自動化をランキング順に返す。"""
        ...

    async def get_by_id(self, automation_id: str) -> Optional[StoredAutomation]:
        ...

    async def update_usage(self, automation_id: str) -> StoredAutomation:
        """利用統計を原子的に更新し、更新後のレコードを返す。

        Raises:
            AutomationNotFoundError: 指定 ID が存在しない場合
        """
        ...

    async def delete_by_id(self, automation_id: str) -> None:
        ...

    async def export_all(self) -> list[StoredAutomation]:
        """全レコードのディープコピーを返す。"""
        ...

    async def import_automations(self, automations: Iterable[StoredAutomation]) -> None:
        """各レコードを id をキーに upsert する。"""
        ...

    async def clear(self) -> None:
        ...


# ---------------------------------------------------------------------------
# インデックス経路
# ---------------------------------------------------------------------------

class IndexPath(enum.Enum):
    """find_matching() が候補取得に使うインデックス。"""

    ACTION_WEBSITE = "action_website"
    ACTION = "action"
    WEBSITE = "website"
    EVENT_TYPE = "event_type"
    FULL_SCAN = "full_scan"


def select_index_path(criteria: AutomationSearchCriteria) -> IndexPath:
    """条件から使用するインデックス経路を1つだけ選ぶ。

    空文字列の条件は未指定として扱う。
    """
    if criteria.action and criteria.website:
        path = IndexPath.ACTION_WEBSITE
    elif criteria.action:
        path = IndexPath.ACTION
    elif criteria.website:
        path = IndexPath.WEBSITE
    elif criteria.eventType:
        path = IndexPath.EVENT_TYPE
    else:
        path = IndexPath.FULL_SCAN
    logger.debug("インデックス経路: %s", path.value)
    return path


def index_matches(path: IndexPath, criteria: AutomationSearchCriteria, automation: StoredAutomation) -> bool:
    """レコードが指定インデックス経路のキーに一致するかを返す。

    キー値を持たないバックエンド（メモリ）はこの述語で索引を再現する。
    """
    if path is IndexPath.ACTION_WEBSITE:
        return automation.action == criteria.action and automation.website == criteria.website
    if path is IndexPath.ACTION:
        return automation.action == criteria.action
    if path is IndexPath.WEBSITE:
        return automation.website == criteria.website
    if path is IndexPath.EVENT_TYPE:
        return automation.eventType == criteria.eventType
    return True


# ---------------------------------------------------------------------------
# フィルタ
# ---------------------------------------------------------------------------

def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def matches_context(automation: StoredAutomation, context: Mapping[str, Any]) -> bool:
    """レコードの contextPatterns が与えられたコンテキストを許容するかを返す。

    contextPatterns を持たないレコードは常に一致する。
    パターンを持つキーがコンテキストにない場合は不一致。
    """
    patterns = automation.matching.contextPatterns
    if not patterns:
        return True

    for key, pattern in patterns.items():
        if key not in context:
            return False
        value = context[key]
        if isinstance(pattern, str) and "*" in pattern:
            if not wildcard_match(pattern, _stringify(value)):
                return False
        elif value != pattern:
            return False
    return True


def apply_filters(
    candidates: Iterable[StoredAutomation],
    criteria: AutomationSearchCriteria,
) -> list[StoredAutomation]:
    """インデックス取得後の候補に残りの条件を順に適用する。"""
    results = list(candidates)

    if criteria.parameters is not None:
        required = criteria.parameters
        results = [a for a in results if all(p in a.parameters for p in required)]

    if criteria.minConfidence is not None:
        floor = criteria.minConfidence
        results = [a for a in results if a.metadata.confidence >= floor]

    if criteria.context is not None:
        # 保存側と同じ JSON 表現に揃えて比較する
        context = to_jsonable_python(criteria.context)
        results = [a for a in results if matches_context(a, context)]

    return results


# ---------------------------------------------------------------------------
# ランキング
# ---------------------------------------------------------------------------

def _compare(a: StoredAutomation, b: StoredAutomation) -> float:
    diff = b.metadata.confidence - a.metadata.confidence
    if abs(diff) > CONFIDENCE_TIE_EPSILON:
        return diff
    return b.metadata.useCount - a.metadata.useCount


def rank_automations(candidates: Iterable[StoredAutomation]) -> list[StoredAutomation]:
    """信頼度降順、近接した信頼度同士は useCount 降順に並べる。

    比較は推移的でないため、入力順に結果が依存しないよう
    先に id 順へ揃えてから安定ソートする。
    """
    by_id = sorted(candidates, key=lambda a: a.id)
    return sorted(by_id, key=cmp_to_key(_compare))


def refine(candidates: Iterable[StoredAutomation], criteria: AutomationSearchCriteria) -> list[StoredAutomation]:
    """フィルタとランキングをまとめて適用する。"""
    return rank_automations(apply_filters(candidates, criteria))


# ---------------------------------------------------------------------------
# 利用統計
# ---------------------------------------------------------------------------

def bump_confidence(confidence: float) -> float:
    """再利用1回分の信頼度を返す。1.0 で飽和する。"""
    return min(1.0, confidence + CONFIDENCE_STEP)
