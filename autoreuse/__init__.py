"""
autoreuse: 記録済みブラウザ自動化の再利用エンジン

自動化リクエストに対して、保存済みスクリプトを実行するか、
再利用をユーザーに確認するか、新規に記録するかを判定する。

主要エクスポート:
  - AutomationManager: 公開 API
  - MemoryAutomationStorage / SqliteAutomationStorage: ストア実装
  - AutomationRequestedEvent / AutomationImplementedEvent: 入力イベント
"""

from __future__ import annotations

from .core.decision import Decision
from .core.manager import AutomationManager
from .core.tracker import ExecutionResult
from .errors import AutomationError, AutomationNotFoundError, StorageUnavailableError
from .models.events import AutomationImplementedEvent, AutomationRequestedEvent, parse_event
from .models.schema import AutomationSearchCriteria, ReusePreference, StoredAutomation
from .storage.memory import MemoryAutomationStorage
from .storage.sqlite import SqliteAutomationStorage

__version__ = "0.1.0"

__all__ = [
    "AutomationError",
    "AutomationImplementedEvent",
    "AutomationManager",
    "AutomationNotFoundError",
    "AutomationRequestedEvent",
    "AutomationSearchCriteria",
    "Decision",
    "ExecutionResult",
    "MemoryAutomationStorage",
    "ReusePreference",
    "SqliteAutomationStorage",
    "StorageUnavailableError",
    "StoredAutomation",
    "parse_event",
]
