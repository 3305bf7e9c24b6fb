"""
保存スキーマ定義: 学習済み自動化レコードと検索条件

ストレージに永続化される StoredAutomation と、その検索に使う
AutomationSearchCriteria、ユーザーの再利用設定 ReusePreference を
Pydantic v2 モデルとして定義する。

フィールド名はディスク上の契約（エクスポートファイル・SQLite の payload）を
そのまま表すため camelCase を維持する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# 定数
# ---------------------------------------------------------------------------

SCHEMA_VERSION = 1
"""現在のレコードスキーマバージョン。これ以外の version は受け付けない。"""

REQUEST_EVENT_TYPE = "automationRequested"
"""自動化が応答するリクエストイベントの種別。"""

INITIAL_CONFIDENCE = 0.8
"""新規記録された自動化の初期信頼度。"""


# ---------------------------------------------------------------------------
# StoredAutomation のサブモデル
# ---------------------------------------------------------------------------

class AutomationMetadata(BaseModel):
    """記録・利用に関するメタ情報。

    useCount は単調非減少、confidence は [0, 1] に制約される。
    """

    recordedAt: datetime = Field(..., description="記録日時")
    lastUsed: Optional[datetime] = Field(default=None, description="最終利用日時")
    useCount: int = Field(default=0, ge=0, description="再利用回数")
    actionsCount: int = Field(default=0, ge=0, description="記録された操作数")
    recordingDuration: Optional[float] = Field(
        default=None, ge=0, description="記録にかかった時間（ミリ秒）",
    )
    confidence: float = Field(
        default=INITIAL_CONFIDENCE, ge=0.0, le=1.0, description="信頼度（0〜1）",
    )
    userNotes: Optional[str] = Field(default=None, description="ユーザーメモ")
    tags: list[str] = Field(default_factory=list, description="任意タグ")


class MatchingRules(BaseModel):
    """新しいリクエストへの適用可否を判断するためのマッチング情報。

    contextPatterns の値が文字列で `*` を含む場合はワイルドカードとして扱い、
    それ以外は完全一致で比較する。
    """

    urlPattern: Optional[str] = Field(default=None, description="URL パターン")
    domainPattern: Optional[str] = Field(default=None, description="ドメイン")
    exactParameters: list[str] = Field(
        default_factory=list, description="必須パラメータ名のコピー",
    )
    contextPatterns: Optional[dict[str, Any]] = Field(
        default=None, description="コンテキストキーごとのパターン",
    )


# ---------------------------------------------------------------------------
# StoredAutomation 本体
# ---------------------------------------------------------------------------

class StoredAutomation(BaseModel):
    """1つのウェブサイト上の1つのアクションについて学習済みの自動化。

    生成後に変化するのは metadata（利用統計）のみ。
    id は生成時に採番され、以後変更されない。
    """

    id: str = Field(..., min_length=1, description="一意な ID")
    eventType: str = Field(default=REQUEST_EVENT_TYPE, description="応答するイベント種別")
    action: str = Field(..., description="アクション名（search, login 等）")
    website: str = Field(..., description="適用対象のドメイン")
    parameters: list[str] = Field(default_factory=list, description="スクリプトが要求するパラメータ名")
    script: str = Field(default="", description="記録された生スクリプト")
    templatedScript: str = Field(default="", description="パラメータ化済みスクリプト")
    metadata: AutomationMetadata
    matching: MatchingRules = Field(default_factory=MatchingRules)
    version: int = Field(default=SCHEMA_VERSION, description="スキーマバージョン")

    @field_validator("parameters")
    @classmethod
    def _parameters_distinct(cls, v: list[str]) -> list[str]:
        """パラメータ名に重複がないことを検証する。"""
        if len(set(v)) != len(v):
            raise ValueError(f"parameters に重複があります: {v}")
        return v

    @field_validator("version")
    @classmethod
    def _version_supported(cls, v: int) -> int:
        """未対応のスキーマバージョンを拒否する（マイグレーションは行わない）。"""
        if v != SCHEMA_VERSION:
            raise ValueError(
                f"未対応のスキーマバージョンです: {v}（対応: {SCHEMA_VERSION}）"
            )
        return v


# ---------------------------------------------------------------------------
# 検索条件
# ---------------------------------------------------------------------------

class AutomationSearchCriteria(BaseModel):
    """find_matching() に渡す検索条件。全フィールド任意。"""

    eventType: Optional[str] = None
    action: Optional[str] = None
    website: Optional[str] = None
    parameters: Optional[list[str]] = Field(default=None, description="必須パラメータ名")
    context: Optional[dict[str, Any]] = Field(default=None, description="contextPatterns と照合する値")
    minConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="信頼度の下限")


# ---------------------------------------------------------------------------
# ユーザー設定
# ---------------------------------------------------------------------------

class DoNotAskFor(BaseModel):
    """「しばらく確認しない」期間の指定。

    type="duration" は value 分、type="times" は value 時間として扱う
    （回数を数えるのではなく時間で近似している）。
    """

    type: Literal["times", "duration"]
    value: float = Field(..., ge=0, allow_inf_nan=False)


class ReusePreference(BaseModel):
    """(action, website) ごとのユーザー判断。"""

    action: Literal["reuse", "record-new", "skip"]
    doNotAskFor: Optional[DoNotAskFor] = None
