"""
設定: 環境変数・CLI オプションからの設定読み込みとストア生成

CLI オプション > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  AUTOREUSE_STORE     : ストア種別（sqlite/memory, デフォルト: sqlite）
  AUTOREUSE_DB_PATH   : SQLite ファイルパス（デフォルト: automations.db）
  AUTOREUSE_LOG_LEVEL : ログレベル（デフォルト: WARNING）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from .core.clock import Clock
from .storage.base import AutomationStorage
from .storage.memory import MemoryAutomationStorage
from .storage.sqlite import SqliteAutomationStorage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_STORE = "AUTOREUSE_STORE"
_ENV_DB_PATH = "AUTOREUSE_DB_PATH"
_ENV_LOG_LEVEL = "AUTOREUSE_LOG_LEVEL"

_STORES = ("sqlite", "memory")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class EngineConfig:
    """autoreuse の実行時設定。

    Attributes:
        store: ストア種別（sqlite=永続, memory=プロセス内のみ）
        db_path: SQLite ファイルパス
        log_level: ログレベル名
    """

    store: Literal["sqlite", "memory"] = "sqlite"
    db_path: str = "automations.db"
    log_level: str = "WARNING"


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------

def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """環境変数から EngineConfig を生成する。

    不正な値は警告を出してデフォルト値のままにする。

    Args:
        environ: 環境変数辞書（None の場合は os.environ）
    """
    env = os.environ if environ is None else environ
    config = EngineConfig()

    if _ENV_STORE in env:
        val = env[_ENV_STORE].lower()
        if val in _STORES:
            config.store = val  # type: ignore[assignment]
        else:
            logger.warning("%s の値が不正です: %s", _ENV_STORE, env[_ENV_STORE])

    if _ENV_DB_PATH in env:
        config.db_path = env[_ENV_DB_PATH]

    if _ENV_LOG_LEVEL in env:
        val = env[_ENV_LOG_LEVEL].upper()
        if val in _LOG_LEVELS:
            config.log_level = val
        else:
            logger.warning("%s の値が不正です: %s", _ENV_LOG_LEVEL, env[_ENV_LOG_LEVEL])

    return config


def apply_overrides(
    config: EngineConfig,
    *,
    store: Optional[str] = None,
    db_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> EngineConfig:
    """CLI オプションを EngineConfig に適用する。指定されたものだけ上書きする。

    Raises:
        ValueError: store / log_level が未知の値の場合
    """
    if store is not None:
        if store not in _STORES:
            raise ValueError(f"未知のストア種別です: {store}（sqlite / memory）")
        config.store = store  # type: ignore[assignment]

    if db_path is not None:
        config.db_path = db_path

    if log_level is not None:
        level = log_level.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"未知のログレベルです: {log_level}")
        config.log_level = level

    return config


# ---------------------------------------------------------------------------
# ストア生成
# ---------------------------------------------------------------------------

def create_storage(config: EngineConfig, clock: Optional[Clock] = None) -> AutomationStorage:
    """設定に従ってストアを生成する。

    永続ストアを使うかどうかは設定で明示的に決め、環境の自動判定は行わない。
    """
    if config.store == "memory":
        logger.info("メモリストアを使用します")
        return MemoryAutomationStorage(clock)
    return SqliteAutomationStorage(config.db_path, clock)
