"""
SqliteAutomationStorage: SQLite による永続自動化ストア

レコード全体は payload 列に JSON で保持し、検索キーとなる
event_type / action / website / confidence / last_used を列として持つ。
find_matching() のインデックス経路はそれぞれ実インデックスに対応する:

  - idx_automations_action_website : (action, website)
  - idx_automations_action         : action
  - idx_automations_website        : website
  - idx_automations_event_type     : event_type

ブロッキングな sqlite3 呼び出しはワーカースレッドで実行し、
接続はロックで直列化する。update_usage() は1トランザクションで
読み取り・更新を行うため、同一 ID への同時更新でも useCount を失わない。
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar

from ..core.clock import Clock, SystemClock
from ..errors import AutomationNotFoundError, StorageUnavailableError
from ..models.schema import AutomationSearchCriteria, StoredAutomation
from .base import IndexPath, bump_confidence, refine, select_index_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# スキーマ
# ---------------------------------------------------------------------------

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS automations (
        id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        action TEXT NOT NULL,
        website TEXT NOT NULL,
        confidence REAL NOT NULL,
        last_used TEXT,
        payload TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_automations_action_website ON automations(action, website)",
    "CREATE INDEX IF NOT EXISTS idx_automations_action ON automations(action)",
    "CREATE INDEX IF NOT EXISTS idx_automations_website ON automations(website)",
    "CREATE INDEX IF NOT EXISTS idx_automations_event_type ON automations(event_type)",
    "CREATE INDEX IF NOT EXISTS idx_automations_last_used ON automations(last_used)",
    "CREATE INDEX IF NOT EXISTS idx_automations_confidence ON automations(confidence)",
)

_UPSERT = """
    INSERT INTO automations (id, event_type, action, website, confidence, last_used, payload)
    VALUES (?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        event_type=excluded.event_type,
        action=excluded.action,
        website=excluded.website,
        confidence=excluded.confidence,
        last_used=excluded.last_used,
        payload=excluded.payload
"""

_SELECT_BY_PATH: dict[IndexPath, str] = {
    IndexPath.ACTION_WEBSITE: "SELECT payload FROM automations WHERE action = ? AND website = ? ORDER BY id",
    IndexPath.ACTION: "SELECT payload FROM automations WHERE action = ? ORDER BY id",
    IndexPath.WEBSITE: "SELECT payload FROM automations WHERE website = ? ORDER BY id",
    IndexPath.EVENT_TYPE: "SELECT payload FROM automations WHERE event_type = ? ORDER BY id",
    IndexPath.FULL_SCAN: "SELECT payload FROM automations ORDER BY id",
}


def _row_values(automation: StoredAutomation) -> tuple:
    last_used = automation.metadata.lastUsed
    return (
        automation.id,
        automation.eventType,
        automation.action,
        automation.website,
        automation.metadata.confidence,
        last_used.isoformat() if last_used is not None else None,
        automation.model_dump_json(),
    )


def _path_params(path: IndexPath, criteria: AutomationSearchCriteria) -> tuple:
    if path is IndexPath.ACTION_WEBSITE:
        return (criteria.action, criteria.website)
    if path is IndexPath.ACTION:
        return (criteria.action,)
    if path is IndexPath.WEBSITE:
        return (criteria.website,)
    if path is IndexPath.EVENT_TYPE:
        return (criteria.eventType,)
    return ()


# ---------------------------------------------------------------------------
# SqliteAutomationStorage 本体
# ---------------------------------------------------------------------------

class SqliteAutomationStorage:
    """SQLite ファイル（または ":memory:"）を使う AutomationStorage 実装。

    使用例::

        storage = SqliteAutomationStorage("automations.db")
        await storage.save(automation)
        matches = await storage.find_matching(criteria)
        storage.close()
    """

    def __init__(self, db_path: str | Path = "automations.db", clock: Optional[Clock] = None) -> None:
        """データベースを開き、テーブルとインデックスを作成する。

        Raises:
            StorageUnavailableError: データベースを開けない場合
        """
        self.db_path = str(db_path)
        self._clock: Clock = clock or SystemClock()
        self._lock = threading.Lock()
        try:
            # 手動でトランザクションを制御する
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
            with closing(self._conn.cursor()) as cur:
                for statement in _SCHEMA:
                    cur.execute(statement)
        except sqlite3.Error as exc:
            raise StorageUnavailableError(
                f"データベースを開けませんでした: {self.db_path}: {exc}"
            ) from exc
        logger.info("SQLite ストアを開きました: %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ----- 実行ヘルパー -----

    async def _run(self, fn: Callable[[sqlite3.Cursor], T]) -> T:
        return await asyncio.to_thread(self._run_sync, fn)

    def _run_sync(self, fn: Callable[[sqlite3.Cursor], T]) -> T:
        with self._lock:
            try:
                with closing(self._conn.cursor()) as cur:
                    cur.execute("BEGIN IMMEDIATE")
                    try:
                        result = fn(cur)
                    except BaseException:
                        cur.execute("ROLLBACK")
                        raise
                    cur.execute("COMMIT")
                    return result
            except sqlite3.Error as exc:
                raise StorageUnavailableError(f"SQLite 操作に失敗しました: {exc}") from exc

    # ----- 公開メソッド -----

    async def save(self, automation: StoredAutomation) -> None:
        values = _row_values(automation)
        await self._run(lambda cur: cur.execute(_UPSERT, values))
        logger.debug("自動化を保存しました: %s", automation.id)

    async def find_matching(self, criteria: AutomationSearchCriteria) -> list[StoredAutomation]:
        path = select_index_path(criteria)
        sql = _SELECT_BY_PATH[path]
        params = _path_params(path, criteria)
        rows = await self._run(lambda cur: cur.execute(sql, params).fetchall())
        return refine((StoredAutomation.model_validate_json(row[0]) for row in rows), criteria)

    async def get_by_id(self, automation_id: str) -> Optional[StoredAutomation]:
        row = await self._run(
            lambda cur: cur.execute(
                "SELECT payload FROM automations WHERE id = ?", (automation_id,)
            ).fetchone()
        )
        if row is None:
            return None
        return StoredAutomation.model_validate_json(row[0])

    async def update_usage(self, automation_id: str) -> StoredAutomation:
        def _update(cur: sqlite3.Cursor) -> StoredAutomation:
            row = cur.execute(
                "SELECT payload FROM automations WHERE id = ?", (automation_id,)
            ).fetchone()
            if row is None:
                raise AutomationNotFoundError(automation_id)
            automation = StoredAutomation.model_validate_json(row[0])
            metadata = automation.metadata
            metadata.lastUsed = self._clock.now()
            metadata.useCount += 1
            metadata.confidence = bump_confidence(metadata.confidence)
            cur.execute(_UPSERT, _row_values(automation))
            return automation

        return await self._run(_update)

    async def delete_by_id(self, automation_id: str) -> None:
        await self._run(lambda cur: cur.execute("DELETE FROM automations WHERE id = ?", (automation_id,)))

    async def export_all(self) -> list[StoredAutomation]:
        rows = await self._run(
            lambda cur: cur.execute("SELECT payload FROM automations ORDER BY id").fetchall()
        )
        return [StoredAutomation.model_validate_json(row[0]) for row in rows]

    async def import_automations(self, automations: Iterable[StoredAutomation]) -> None:
        values = [_row_values(a) for a in automations]
        await self._run(lambda cur: cur.executemany(_UPSERT, values))

    async def clear(self) -> None:
        await self._run(lambda cur: cur.execute("DELETE FROM automations"))
