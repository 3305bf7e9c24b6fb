"""
CLI エントリポイント: Typer ベースのコマンドラインインターフェース

autoreuse コマンドとして以下のサブコマンドを提供する:
  - list: 保存済み自動化の一覧
  - search: 条件検索（ランキング順）
  - show: 1件の詳細（JSON）
  - delete: 削除
  - export / import: YAML アーカイブの書き出し・読み込み
  - clear: 全削除
  - request: リクエストに対する判定結果の表示
  - run: 保存済み自動化の実行（シミュレーション）
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from .config import EngineConfig, apply_overrides, create_storage, load_config_from_env
from .core.manager import AutomationManager
from .models.events import AutomationRequestedEvent
from .models.schema import AutomationSearchCriteria, StoredAutomation
from .storage.archive import AutomationArchive
from .storage.sqlite import SqliteAutomationStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "autoreuse: 記録済みブラウザ自動化の再利用エンジン\n\n"
        "保存済みの自動化を検索・実行し、再記録の要否を判定します。"
    ),
    no_args_is_help=True,
)

_state: dict[str, EngineConfig] = {}


@app.callback()
def main(
    store: Optional[str] = typer.Option(
        None, "--store", help="ストア種別 (sqlite / memory)",
    ),
    db: Optional[str] = typer.Option(
        None, "--db", help="SQLite ファイルパス",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="ログレベル (DEBUG / INFO / WARNING / ERROR)",
    ),
) -> None:
    """共通オプションを設定に反映する。"""
    try:
        config = apply_overrides(
            load_config_from_env(), store=store, db_path=db, log_level=log_level,
        )
    except ValueError as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=2)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(name)s - %(levelname)s - %(message)s",
    )
    _state["config"] = config


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

def _run_with_manager(fn: Callable[[AutomationManager], Awaitable[T]]) -> T:
    """設定からストアを生成し、マネージャーを渡して非同期処理を実行する。"""
    config = _state.get("config") or load_config_from_env()
    storage = create_storage(config)
    try:
        return asyncio.run(fn(AutomationManager(storage)))
    finally:
        if isinstance(storage, SqliteAutomationStorage):
            storage.close()


def _parse_params(items: Optional[list[str]]) -> dict[str, str]:
    """key=value 形式のオプション値を辞書に変換する。"""
    params: dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"key=value 形式で指定してください: {item}")
        params[key] = value
    return params


def _format_row(automation: StoredAutomation) -> str:
    meta = automation.metadata
    return (
        f"{automation.id}  {automation.action:<16} {automation.website:<24} "
        f"confidence={meta.confidence:.2f} uses={meta.useCount}"
    )


def _echo_rows(automations: list[StoredAutomation]) -> None:
    if not automations:
        typer.echo("該当する自動化はありません。")
        return
    for automation in automations:
        typer.echo(_format_row(automation))


# ---------------------------------------------------------------------------
# 参照コマンド
# ---------------------------------------------------------------------------

@app.command("list")
def list_automations() -> None:
    """保存済みの全自動化を表示する。"""
    automations = _run_with_manager(lambda m: m.get_all_automations())
    _echo_rows(automations)


@app.command()
def search(
    action: Optional[str] = typer.Option(None, "--action", "-a", help="アクション名"),
    website: Optional[str] = typer.Option(None, "--website", "-w", help="ウェブサイト"),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="必須パラメータ名（複数指定可）",
    ),
    min_confidence: Optional[float] = typer.Option(
        None, "--min-confidence", min=0.0, max=1.0, help="信頼度の下限",
    ),
) -> None:
    """条件に合う自動化をランキング順に表示する。"""
    criteria = AutomationSearchCriteria(
        action=action,
        website=website,
        parameters=list(param) if param else None,
        minConfidence=min_confidence,
    )
    automations = _run_with_manager(lambda m: m.search_automations(criteria))
    _echo_rows(automations)


@app.command()
def show(automation_id: str = typer.Argument(..., help="自動化 ID")) -> None:
    """1件の自動化を JSON で表示する。"""
    automation = _run_with_manager(lambda m: m.storage.get_by_id(automation_id))
    if automation is None:
        typer.echo(f"エラー: 自動化が見つかりません: {automation_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(automation.model_dump_json(indent=2))


# ---------------------------------------------------------------------------
# 管理コマンド
# ---------------------------------------------------------------------------

@app.command()
def delete(automation_id: str = typer.Argument(..., help="自動化 ID")) -> None:
    """自動化を削除する。"""
    _run_with_manager(lambda m: m.delete_automation(automation_id))
    typer.echo(f"削除しました: {automation_id}")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="確認なしで削除する"),
) -> None:
    """全自動化を削除する。"""
    if not yes and not typer.confirm("全ての自動化を削除しますか？"):
        typer.echo("中止しました。")
        raise typer.Exit(code=0)
    _run_with_manager(lambda m: m.clear_all())
    typer.echo("全ての自動化を削除しました。")


@app.command("export")
def export_cmd(output: Path = typer.Argument(..., help="出力先 YAML ファイル")) -> None:
    """全自動化を YAML アーカイブに書き出す。"""
    automations = _run_with_manager(lambda m: m.export_automations())
    count = AutomationArchive().dump(automations, output)
    typer.echo(f"{count} 件を書き出しました: {output}")


@app.command("import")
def import_cmd(source: Path = typer.Argument(..., help="読み込む YAML ファイル")) -> None:
    """YAML アーカイブから自動化を取り込む（同じ ID は上書き）。"""
    try:
        automations = AutomationArchive().load(source)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)
    _run_with_manager(lambda m: m.import_automations(automations))
    typer.echo(f"{len(automations)} 件を取り込みました: {source}")


# ---------------------------------------------------------------------------
# 判定・実行コマンド
# ---------------------------------------------------------------------------

@app.command()
def request(
    action: str = typer.Argument(..., help="アクション名"),
    website: Optional[str] = typer.Option(None, "--website", "-w", help="ウェブサイト"),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="パラメータ（key=value, 複数指定可）",
    ),
) -> None:
    """リクエストに対する判定（execute / reuse-prompt / record-new）を表示する。"""
    event = AutomationRequestedEvent(
        action=action, website=website, parameters=_parse_params(param),
    )
    decision = _run_with_manager(lambda m: m.handle_request(event))
    typer.echo(f"{decision.action}: {decision.message}")
    if decision.automation is not None:
        typer.echo(_format_row(decision.automation))


@app.command()
def run(
    automation_id: str = typer.Argument(..., help="自動化 ID"),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="パラメータ（key=value, 複数指定可）",
    ),
) -> None:
    """保存済み自動化を実行する（スクリプトはシミュレーション実行）。"""
    params: dict[str, Any] = _parse_params(param)
    result = _run_with_manager(lambda m: m.execute_automation(automation_id, params))
    payload = {
        "success": result.success,
        "automationId": result.automation_id,
        "executionTimeMs": round(result.execution_time_ms, 3),
        "result": result.result,
        "error": result.error,
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    if not result.success:
        raise typer.Exit(code=1)
