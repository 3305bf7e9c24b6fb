"""
イベント定義: 自動化リクエストと記録完了通知

拡張機能・UI 層から届くペイロードを種別ごとの Pydantic モデルで表す。
type フィールドを判別子とするタグ付き Union（AutomationEvent）で受け取り、
判定エンジンは AutomationRequestedEvent のみを受け付ける。
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .schema import REQUEST_EVENT_TYPE


# ---------------------------------------------------------------------------
# リクエスト
# ---------------------------------------------------------------------------

class AutomationRequestedEvent(BaseModel):
    """ある action の自動化を要求するイベント。学習ループの起点。"""

    type: Literal["automationRequested"] = REQUEST_EVENT_TYPE
    action: str = Field(..., min_length=1, description="アクション名（search, login 等）")
    parameters: dict[str, Any] = Field(default_factory=dict, description="パラメータ値")
    context: Optional[dict[str, Any]] = Field(default=None, description="補助コンテキスト")
    expectedOutcome: Optional[str] = Field(default=None, description="期待される結果の説明")
    website: Optional[str] = Field(default=None, description="対象ウェブサイト")
    tabId: Optional[int] = Field(default=None, description="ブラウザタブ ID")
    correlationId: Optional[str] = Field(default=None, description="相関 ID")


# ---------------------------------------------------------------------------
# 記録完了通知
# ---------------------------------------------------------------------------

class RecordedElement(BaseModel):
    """記録セッション中に操作された要素。"""

    selector: str
    action: str
    value: Optional[str] = None
    timestamp: float = 0


class RecordingMetadata(BaseModel):
    """記録セッションのメタ情報。"""

    recordedAt: datetime
    websiteUrl: str = ""
    recordingDurationMs: float = Field(default=0, ge=0)
    stepCount: int = Field(default=0, ge=0)
    elements: list[RecordedElement] = Field(default_factory=list)
    userNotes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class AutomationImplementedEvent(BaseModel):
    """記録セッションの結果として届く実装通知。"""

    type: Literal["automationImplemented"] = "automationImplemented"
    requestId: str = Field(..., description="元リクエストのイベント ID")
    action: str = Field(..., min_length=1)
    script: str = Field(..., description="記録された生スクリプト")
    templatedScript: str = Field(..., description="パラメータ化済みスクリプト")
    metadata: RecordingMetadata
    website: Optional[str] = None
    context: Optional[dict[str, Any]] = Field(
        default=None, description="元リクエストのコンテキスト（contextPatterns になる）",
    )


# ---------------------------------------------------------------------------
# タグ付き Union
# ---------------------------------------------------------------------------

AutomationEvent = Annotated[
    Union[AutomationRequestedEvent, AutomationImplementedEvent],
    Field(discriminator="type"),
]
"""type フィールドで判別されるイベント Union。"""

_EVENT_ADAPTER: TypeAdapter[AutomationEvent] = TypeAdapter(AutomationEvent)


def parse_event(data: dict[str, Any]) -> AutomationRequestedEvent | AutomationImplementedEvent:
    """辞書からイベントモデルを生成する。

    Args:
        data: type フィールドを含むイベント辞書

    Returns:
        type に対応するイベントモデル

    Raises:
        pydantic.ValidationError: type が未知、またはペイロードが不正な場合
    """
    return _EVENT_ADAPTER.validate_python(data)
