# ストレージモジュール
# 自動化ストアの共通インターフェース、SQLite / メモリ実装、YAML アーカイブを提供

from .archive import AutomationArchive
from .base import AutomationStorage, IndexPath, rank_automations, select_index_path
from .memory import MemoryAutomationStorage
from .sqlite import SqliteAutomationStorage

__all__ = [
    "AutomationArchive",
    "AutomationStorage",
    "IndexPath",
    "MemoryAutomationStorage",
    "SqliteAutomationStorage",
    "rank_automations",
    "select_index_path",
]
