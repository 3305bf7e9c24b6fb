"""
MemoryAutomationStorage: プロセス内メモリの自動化ストア

永続性のないバックエンド。テストや永続ストアが使えない環境向け。
検索結果・更新結果は SQLite バックエンドと同一になるよう、
インデックス経路の選択とフィルタ・ランキングは storage.base を共有する。
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from ..core.clock import Clock, SystemClock
from ..errors import AutomationNotFoundError
from ..models.schema import AutomationSearchCriteria, StoredAutomation
from .base import bump_confidence, index_matches, refine, select_index_path

logger = logging.getLogger(__name__)


def _normalized(automation: StoredAutomation) -> StoredAutomation:
    """JSON 表現を経由したコピーを返す。

    contextPatterns の tuple や datetime は SQLite と同じく list / 文字列になる。
    """
    return StoredAutomation.model_validate_json(automation.model_dump_json())


class MemoryAutomationStorage:
    """dict ベースの AutomationStorage 実装。

    格納・返却ともにディープコピーを使い、呼び出し側の変更が
    ストア内部に漏れないようにする。全操作はロックで直列化する。
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or SystemClock()
        self._automations: dict[str, StoredAutomation] = {}
        self._lock = threading.Lock()

    async def save(self, automation: StoredAutomation) -> None:
        with self._lock:
            self._automations[automation.id] = _normalized(automation)
        logger.debug("自動化を保存しました: %s", automation.id)

    async def find_matching(self, criteria: AutomationSearchCriteria) -> list[StoredAutomation]:
        path = select_index_path(criteria)
        with self._lock:
            candidates = [
                a.model_copy(deep=True)
                for a in self._automations.values()
                if index_matches(path, criteria, a)
            ]
        return refine(candidates, criteria)

    async def get_by_id(self, automation_id: str) -> Optional[StoredAutomation]:
        with self._lock:
            automation = self._automations.get(automation_id)
            return automation.model_copy(deep=True) if automation is not None else None

    async def update_usage(self, automation_id: str) -> StoredAutomation:
        with self._lock:
            automation = self._automations.get(automation_id)
            if automation is None:
                raise AutomationNotFoundError(automation_id)
            metadata = automation.metadata
            metadata.lastUsed = self._clock.now()
            metadata.useCount += 1
            metadata.confidence = bump_confidence(metadata.confidence)
            return automation.model_copy(deep=True)

    async def delete_by_id(self, automation_id: str) -> None:
        with self._lock:
            self._automations.pop(automation_id, None)

    async def export_all(self) -> list[StoredAutomation]:
        with self._lock:
            return [self._automations[k].model_copy(deep=True) for k in sorted(self._automations)]

    async def import_automations(self, automations: Iterable[StoredAutomation]) -> None:
        with self._lock:
            for automation in automations:
                self._automations[automation.id] = _normalized(automation)

    async def clear(self) -> None:
        with self._lock:
            self._automations.clear()
