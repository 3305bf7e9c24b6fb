"""
ExecutionTracker: 保存済み自動化の実行と利用統計の更新

ID で自動化を取得し、利用統計を更新してから実行機構に処理を委ねる。
実行失敗は利用者に見える通常の結果として扱い、例外は送出せず
ExecutionResult(success=False) に変換する。

実際のスクリプト実行（Playwright 等）は外部の ScriptExecutor が担う。
SimulatedExecutor はテンプレートへのパラメータ埋め込みのみを行う。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from ..errors import AutomationNotFoundError
from ..models.schema import StoredAutomation
from ..storage.base import AutomationStorage
from .patterns import fill_template

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 実行結果
# ---------------------------------------------------------------------------

@dataclass
class ExecutionResult:
    """自動化1回分の実行結果。

    Attributes:
        success: 成功したか
        automation_id: 実行対象の ID
        execution_time_ms: 呼び出しから完了までの経過時間（ミリ秒）
        result: 実行機構の戻り値（成功時のみ）
        error: エラーメッセージ（失敗時のみ）
    """

    success: bool
    automation_id: str
    execution_time_ms: float = 0.0
    result: Any = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# 実行機構 Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class ScriptExecutor(Protocol):
    """自動化スクリプトを実行する外部機構のインターフェース。"""

    async def execute(
        self,
        automation: StoredAutomation,
        parameters: Mapping[str, Any],
        context: Optional[Mapping[str, Any]],
    ) -> Any:
        ...


class SimulatedExecutor:
    """テンプレートにパラメータを埋め込んだ結果を返すだけの実行機構。

    ブラウザは起動しない。CLI の run コマンドとテストで使用する。
    """

    async def execute(
        self,
        automation: StoredAutomation,
        parameters: Mapping[str, Any],
        context: Optional[Mapping[str, Any]],
    ) -> dict[str, Any]:
        script = fill_template(automation.templatedScript, parameters)
        logger.info("自動化を実行します（シミュレーション）: %s", automation.action)
        return {
            "status": "success",
            "message": f'Automation "{automation.action}" executed successfully',
            "parameters": dict(parameters),
            "automationId": automation.id,
            "script": script,
        }


# ---------------------------------------------------------------------------
# ExecutionTracker 本体
# ---------------------------------------------------------------------------

class ExecutionTracker:
    """実行と利用統計更新を結び付けるトラッカー。"""

    def __init__(self, storage: AutomationStorage, executor: Optional[ScriptExecutor] = None) -> None:
        self._storage = storage
        self._executor: ScriptExecutor = executor or SimulatedExecutor()

    async def execute(
        self,
        automation_id: str,
        parameters: Mapping[str, Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """自動化を実行し、結果を返す。例外は送出しない。"""
        start_time = time.perf_counter()

        try:
            automation = await self._storage.get_by_id(automation_id)
            if automation is None:
                raise AutomationNotFoundError(automation_id)

            # 実行前に利用統計を更新する
            updated = await self._storage.update_usage(automation_id)
            result = await self._executor.execute(updated, parameters, context)
        except Exception as exc:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.error("自動化の実行に失敗しました: %s: %s", automation_id, exc)
            return ExecutionResult(
                success=False,
                automation_id=automation_id,
                execution_time_ms=elapsed,
                error=str(exc) or type(exc).__name__,
            )

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.info("自動化を実行しました: %s (%.1fms)", automation_id, elapsed)
        return ExecutionResult(
            success=True,
            automation_id=automation_id,
            execution_time_ms=elapsed,
            result=result,
        )
