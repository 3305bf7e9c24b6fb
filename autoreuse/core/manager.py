"""
AutomationManager: 学習ワークフローの公開 API

判定エンジン・ストア・ユーザー設定・実行トラッカーを束ね、
拡張機能／UI 層から呼ばれる操作を提供する。

  - handle_request(): 再利用／新規記録の判定
  - save_automation(): 記録完了通知から StoredAutomation を生成・保存
  - execute_automation(): 保存済み自動化の実行
  - set_user_preference(): 再利用設定の記録
  - get_all_automations() / search_automations(): 参照
  - delete_automation() / clear_all(): 削除
  - export_automations() / import_automations(): 共有・バックアップ
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional

from ..models.events import AutomationImplementedEvent, AutomationRequestedEvent
from ..models.schema import (
    INITIAL_CONFIDENCE,
    REQUEST_EVENT_TYPE,
    SCHEMA_VERSION,
    AutomationMetadata,
    AutomationSearchCriteria,
    MatchingRules,
    ReusePreference,
    StoredAutomation,
)
from ..storage.base import AutomationStorage
from .clock import Clock, SystemClock
from .decision import Decision, DecisionEngine
from .patterns import extract_domain, extract_parameters, extract_website, generate_url_pattern
from .preferences import PreferenceCache, preference_key
from .tracker import ExecutionResult, ExecutionTracker, ScriptExecutor

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class AutomationManager:
    """自動化の学習・再利用ワークフローを調整するマネージャー。

    ストアは呼び出し側が生成して渡す（環境による自動選択はしない）。

    使用例::

        manager = AutomationManager(MemoryAutomationStorage())
        decision = await manager.handle_request(request)
        if decision.action == "record-new":
            ...
    """

    def __init__(
        self,
        storage: AutomationStorage,
        *,
        clock: Optional[Clock] = None,
        executor: Optional[ScriptExecutor] = None,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._storage = storage
        self._clock: Clock = clock or SystemClock()
        self._preferences = PreferenceCache(self._clock)
        self._engine = DecisionEngine(storage, self._preferences)
        self._tracker = ExecutionTracker(storage, executor)
        self._id_factory = id_factory

    @property
    def storage(self) -> AutomationStorage:
        return self._storage

    @property
    def preferences(self) -> PreferenceCache:
        return self._preferences

    # ----- 判定 -----

    async def handle_request(self, request: AutomationRequestedEvent) -> Decision:
        """リクエストに対して execute / reuse-prompt / record-new を判定する。"""
        return await self._engine.decide(request)

    # ----- 記録 -----

    async def save_automation(self, event: AutomationImplementedEvent) -> StoredAutomation:
        """記録完了通知から StoredAutomation を生成して保存する。

        パラメータ名・ドメイン・URL パターンは通知から導出する。
        初期信頼度は 0.8、useCount は 0。
        """
        website = extract_website(event)
        domain = extract_domain(website)
        parameters = extract_parameters(event.templatedScript)
        recording = event.metadata

        automation = StoredAutomation(
            id=self._id_factory(),
            eventType=REQUEST_EVENT_TYPE,
            action=event.action,
            website=website,
            parameters=parameters,
            script=event.script,
            templatedScript=event.templatedScript,
            metadata=AutomationMetadata(
                recordedAt=recording.recordedAt,
                useCount=0,
                actionsCount=recording.stepCount,
                recordingDuration=recording.recordingDurationMs,
                confidence=INITIAL_CONFIDENCE,
                userNotes=recording.userNotes,
                tags=list(recording.tags),
            ),
            matching=MatchingRules(
                urlPattern=generate_url_pattern(domain),
                domainPattern=domain,
                exactParameters=list(parameters),
                contextPatterns=dict(event.context) if event.context else None,
            ),
            version=SCHEMA_VERSION,
        )

        await self._storage.save(automation)
        logger.info("自動化を保存しました: %s (%s @ %s)", automation.id, automation.action, website)
        return automation

    # ----- 実行 -----

    async def execute_automation(
        self,
        automation_id: str,
        parameters: Mapping[str, Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        return await self._tracker.execute(automation_id, parameters, context)

    # ----- ユーザー設定 -----

    def set_user_preference(
        self,
        action: str,
        website: Optional[str],
        preference: ReusePreference | Mapping[str, Any],
    ) -> None:
        """(action, website) に対するユーザー判断を記録する。"""
        if not isinstance(preference, ReusePreference):
            preference = ReusePreference.model_validate(preference)
        self._preferences.set(preference_key(action, website), preference)

    # ----- 参照・管理 -----

    async def get_all_automations(self) -> list[StoredAutomation]:
        return await self._storage.export_all()

    async def search_automations(
        self, criteria: AutomationSearchCriteria | Mapping[str, Any],
    ) -> list[StoredAutomation]:
        if not isinstance(criteria, AutomationSearchCriteria):
            criteria = AutomationSearchCriteria.model_validate(criteria)
        return await self._storage.find_matching(criteria)

    async def delete_automation(self, automation_id: str) -> None:
        await self._storage.delete_by_id(automation_id)
        logger.info("自動化を削除しました: %s", automation_id)

    async def export_automations(self) -> list[StoredAutomation]:
        return await self._storage.export_all()

    async def import_automations(
        self, automations: Iterable[StoredAutomation | Mapping[str, Any]],
    ) -> None:
        """レコード（モデルまたは辞書）を id をキーに取り込む。

        Raises:
            pydantic.ValidationError: 辞書がスキーマに合わない場合（何も取り込まない）
        """
        records = [
            a if isinstance(a, StoredAutomation) else StoredAutomation.model_validate(a)
            for a in automations
        ]
        await self._storage.import_automations(records)
        logger.info("%d 件の自動化をインポートしました", len(records))

    async def clear_all(self) -> None:
        """全自動化とユーザー設定を削除する。"""
        await self._storage.clear()
        self._preferences.clear()
        logger.info("全自動化とユーザー設定を削除しました")
