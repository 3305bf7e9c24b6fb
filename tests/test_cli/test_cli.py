"""
CLI テスト: typer.testing.CliRunner を使用した CLI コマンドのテスト

各テストは一時ディレクトリの SQLite ファイルを --db で指定して実行する。
事前データは SqliteAutomationStorage で直接投入する。
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from autoreuse.cli import app
from autoreuse.models.schema import AutomationMetadata, StoredAutomation
from autoreuse.storage.archive import AutomationArchive
from autoreuse.storage.sqlite import SqliteAutomationStorage

runner = CliRunner()


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

def _automation(automation_id: str, action: str = "search", confidence: float = 0.8) -> StoredAutomation:
    return StoredAutomation(
        id=automation_id,
        action=action,
        website="example.com",
        parameters=["query"],
        templatedScript="await page.fill('#q', '${payload.parameters.query}')",
        metadata=AutomationMetadata(
            recordedAt=datetime(2025, 3, 15, tzinfo=timezone.utc),
            confidence=confidence,
        ),
    )


def _seed(db_path: Path, *automations: StoredAutomation) -> None:
    async def _save() -> None:
        for automation in automations:
            await store.save(automation)

    store = SqliteAutomationStorage(db_path)
    try:
        asyncio.run(_save())
    finally:
        store.close()


def _load(db_path: Path) -> list[StoredAutomation]:
    store = SqliteAutomationStorage(db_path)
    try:
        return asyncio.run(store.export_all())
    finally:
        store.close()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AUTOREUSE_STORE", "AUTOREUSE_DB_PATH", "AUTOREUSE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "automations.db"


def _invoke(db_path: Path, *args: str, **kwargs):
    return runner.invoke(app, ["--db", str(db_path), *args], **kwargs)


# ===========================================================================
# 1. 共通オプション
# ===========================================================================

class TestGlobalOptions:
    """共通オプションのテスト。"""

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "Usage" in result.output

    def test_unknown_store_exits_2(self, db_path: Path) -> None:
        result = runner.invoke(app, ["--store", "redis", "list"])
        assert result.exit_code == 2
        assert "ストア種別" in result.output

    def test_memory_store(self) -> None:
        result = runner.invoke(app, ["--store", "memory", "list"])
        assert result.exit_code == 0
        assert "該当する自動化はありません。" in result.output


# ===========================================================================
# 2. 参照コマンド
# ===========================================================================

class TestListAndSearch:
    """list / search / show コマンドのテスト。"""

    def test_list_empty(self, db_path: Path) -> None:
        result = _invoke(db_path, "list")
        assert result.exit_code == 0
        assert "該当する自動化はありません。" in result.output

    def test_list_shows_rows(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"), _automation("a2", action="login"))
        result = _invoke(db_path, "list")
        assert result.exit_code == 0
        assert "a1" in result.output
        assert "a2" in result.output
        assert "confidence=0.80" in result.output

    def test_search_ranks_results(self, db_path: Path) -> None:
        _seed(db_path, _automation("low", confidence=0.55), _automation("high", confidence=0.95))
        result = _invoke(db_path, "search", "--action", "search", "--min-confidence", "0.5")
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("high")
        assert lines[1].startswith("low")

    def test_search_by_required_parameter(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "search", "-p", "page")
        assert "該当する自動化はありません。" in result.output

    def test_show(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "show", "a1")
        assert result.exit_code == 0
        assert json.loads(result.output)["id"] == "a1"

    def test_show_missing(self, db_path: Path) -> None:
        result = _invoke(db_path, "show", "missing")
        assert result.exit_code == 1
        assert "missing" in result.output


# ===========================================================================
# 3. 管理コマンド
# ===========================================================================

class TestManagementCommands:
    """delete / clear / export / import コマンドのテスト。"""

    def test_delete(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"), _automation("a2"))
        result = _invoke(db_path, "delete", "a1")
        assert result.exit_code == 0
        assert [a.id for a in _load(db_path)] == ["a2"]

    def test_clear_with_yes(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "clear", "--yes")
        assert result.exit_code == 0
        assert _load(db_path) == []

    def test_clear_aborted(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "clear", input="n\n")
        assert result.exit_code == 0
        assert "中止しました。" in result.output
        assert len(_load(db_path)) == 1

    def test_export_then_import(self, db_path: Path, tmp_path: Path) -> None:
        _seed(db_path, _automation("a1"), _automation("a2", action="login"))
        archive_path = tmp_path / "export.yaml"

        result = _invoke(db_path, "export", str(archive_path))
        assert result.exit_code == 0
        assert "2 件" in result.output

        other_db = tmp_path / "other.db"
        result = _invoke(other_db, "import", str(archive_path))
        assert result.exit_code == 0
        assert _load(other_db) == _load(db_path)

    def test_import_missing_file(self, db_path: Path, tmp_path: Path) -> None:
        result = _invoke(db_path, "import", str(tmp_path / "nothing.yaml"))
        assert result.exit_code == 1
        assert "エラー" in result.output

    def test_import_invalid_record(self, db_path: Path, tmp_path: Path) -> None:
        archive_path = tmp_path / "bad.yaml"
        AutomationArchive().dump([_automation("a1")], archive_path)
        text = archive_path.read_text(encoding="utf-8").replace("confidence: 0.8", "confidence: 7")
        archive_path.write_text(text, encoding="utf-8")

        result = _invoke(db_path, "import", str(archive_path))
        assert result.exit_code == 1
        assert _load(db_path) == []


# ===========================================================================
# 4. 判定・実行コマンド
# ===========================================================================

class TestRequestAndRun:
    """request / run コマンドのテスト。"""

    def test_request_without_match(self, db_path: Path) -> None:
        result = _invoke(db_path, "request", "search", "--website", "example.com", "-p", "query=cats")
        assert result.exit_code == 0
        assert "record-new: No existing automation found for this action" in result.output

    def test_request_with_match(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "request", "search", "-w", "example.com", "-p", "query=cats")
        assert result.exit_code == 0
        assert "reuse-prompt: Found 1 matching automation(s)" in result.output
        assert "a1" in result.output

    def test_request_bad_param_format(self, db_path: Path) -> None:
        result = _invoke(db_path, "request", "search", "-p", "query")
        assert result.exit_code != 0

    def test_run_success(self, db_path: Path) -> None:
        _seed(db_path, _automation("a1"))
        result = _invoke(db_path, "run", "a1", "-p", "query=dogs")
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["success"] is True
        assert payload["automationId"] == "a1"
        assert payload["result"]["script"] == "await page.fill('#q', 'dogs')"
        assert _load(db_path)[0].metadata.useCount == 1

    def test_run_missing_automation(self, db_path: Path) -> None:
        result = _invoke(db_path, "run", "missing")
        assert result.exit_code == 1
        assert '"success": false' in result.output
        assert "Automation missing not found" in result.output
