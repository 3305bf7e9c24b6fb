"""
例外定義: 自動化ストア・判定エンジン共通のエラー分類

  - AutomationNotFoundError: 存在しない自動化 ID を参照した
  - StorageUnavailableError: バックエンドの初期化または I/O に失敗した

実行失敗（スクリプト実行側の例外）は例外として扱わず、
ExecutionTracker が ExecutionResult(success=False) に変換する。
"""

from __future__ import annotations


class AutomationError(Exception):
    """autoreuse の全例外の基底クラス。"""


class AutomationNotFoundError(AutomationError):
    """指定 ID の自動化が存在しない場合に送出される例外。

    Attributes:
        automation_id: 参照された自動化 ID
    """

    def __init__(self, automation_id: str) -> None:
        self.automation_id = automation_id
        super().__init__(f"Automation {automation_id} not found")


class StorageUnavailableError(AutomationError):
    """ストレージバックエンドが利用できない場合に送出される例外。

    初期化失敗と個々の I/O 失敗の両方を表す。リトライは行わない。
    """
