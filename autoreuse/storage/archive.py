"""
AutomationArchive: 自動化レコードの YAML エクスポート・インポート

共有・バックアップ用に export_all() の結果を YAML ファイルへ書き出し、
読み込み時は StoredAutomation モデルとして検証する。

ファイル形式::

    version: 1
    automations:
      - id: ...
        action: search
        website: example.com
        ...
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..models.schema import SCHEMA_VERSION, StoredAutomation

logger = logging.getLogger(__name__)


class AutomationArchive:
    """YAML アーカイブの読み書きを担当する。"""

    def __init__(self) -> None:
        self._yaml = YAML()
        self._yaml.default_flow_style = False

    # ----- dump -----

    def dump(self, automations: Iterable[StoredAutomation], path: Path) -> int:
        """自動化レコードを YAML ファイルに書き出す。

        Args:
            automations: 書き出すレコード
            path: 出力先ファイル

        Returns:
            書き出した件数
        """
        path = Path(path)
        records = [a.model_dump(mode="json") for a in automations]
        data = {"version": SCHEMA_VERSION, "automations": records}

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            self._yaml.dump(data, f)

        logger.info("%d 件の自動化を書き出しました: %s", len(records), path)
        return len(records)

    # ----- load -----

    def load(self, path: Path) -> list[StoredAutomation]:
        """YAML ファイルを読み込み、StoredAutomation のリストに変換する。

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: YAML 構文エラー・形式不正・スキーマ検証エラーの場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"アーカイブファイルが見つかりません: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line_info = ""
            if getattr(e, "problem_mark", None) is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            raise ValueError("アーカイブファイルが空です")

        plain = _to_plain(data)
        if not isinstance(plain, dict) or not isinstance(plain.get("automations"), list):
            raise ValueError("アーカイブには automations リストが必要です")

        automations: list[StoredAutomation] = []
        for index, record in enumerate(plain["automations"]):
            try:
                automations.append(StoredAutomation.model_validate(record))
            except PydanticValidationError as e:
                raise ValueError(f"automations[{index}] のスキーマ検証エラー: {e}") from e

        logger.info("%d 件の自動化を読み込みました: %s", len(automations), path)
        return automations


def _to_plain(data: Any) -> Any:
    """ruamel.yaml の CommentedMap / CommentedSeq を通常の dict / list に変換する。"""
    if isinstance(data, dict):
        return {str(k): _to_plain(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_to_plain(item) for item in data]
    return data
