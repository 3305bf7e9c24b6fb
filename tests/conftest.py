"""
テスト共通フィクスチャ定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
ストアのフィクスチャはメモリ／SQLite の両バックエンドでパラメータ化しており、
同じテストが両方で同一の結果になることを検証する。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from autoreuse.models.events import AutomationImplementedEvent, AutomationRequestedEvent
from autoreuse.models.schema import AutomationMetadata, MatchingRules, StoredAutomation
from autoreuse.storage.memory import MemoryAutomationStorage
from autoreuse.storage.sqlite import SqliteAutomationStorage

BASE_TIME = datetime(2025, 3, 15, 10, 30, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# 時計
# ---------------------------------------------------------------------------

class FakeClock:
    """任意に進められるテスト用時計。"""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# ストア
# ---------------------------------------------------------------------------

@pytest.fixture(params=["memory", "sqlite"])
def storage(request: pytest.FixtureRequest, tmp_path: Path, clock: FakeClock) -> Iterator[Any]:
    """メモリ／SQLite の両バックエンドを提供する pytest フィクスチャ。"""
    if request.param == "memory":
        yield MemoryAutomationStorage(clock)
        return
    store = SqliteAutomationStorage(tmp_path / "automations.db", clock)
    yield store
    store.close()


# ---------------------------------------------------------------------------
# データ生成
# ---------------------------------------------------------------------------

def _build_automation(
    automation_id: str = "auto-1",
    *,
    action: str = "search",
    website: str = "example.com",
    parameters: list[str] | None = None,
    confidence: float = 0.8,
    use_count: int = 0,
    context_patterns: dict[str, Any] | None = None,
    event_type: str = "automationRequested",
) -> StoredAutomation:
    params = ["query"] if parameters is None else parameters
    return StoredAutomation(
        id=automation_id,
        eventType=event_type,
        action=action,
        website=website,
        parameters=params,
        script="await page.fill('#q', 'cats')",
        templatedScript="await page.fill('#q', '${payload.parameters.query}')",
        metadata=AutomationMetadata(
            recordedAt=BASE_TIME,
            useCount=use_count,
            actionsCount=2,
            recordingDuration=1500,
            confidence=confidence,
        ),
        matching=MatchingRules(
            urlPattern=f"https://{website}/*",
            domainPattern=website,
            exactParameters=list(params),
            contextPatterns=context_patterns,
        ),
    )


@pytest.fixture
def make_automation() -> Callable[..., StoredAutomation]:
    """StoredAutomation を生成するファクトリ。"""
    return _build_automation


@pytest.fixture
def search_request() -> AutomationRequestedEvent:
    """example.com での search リクエスト。"""
    return AutomationRequestedEvent(
        action="search", parameters={"query": "cats"}, website="example.com",
    )


@pytest.fixture
def implemented_event() -> AutomationImplementedEvent:
    """記録完了通知のサンプル。"""
    return AutomationImplementedEvent(
        requestId="req-1",
        action="search",
        script="await page.fill('#q', 'cats'); await page.click('#go')",
        templatedScript=(
            "await page.fill('#q', '${payload.parameters.query}');"
            " await page.select('#lang', '${payload.parameters.lang}');"
            " await page.fill('#q2', '${payload.parameters.query}')"
        ),
        metadata={
            "recordedAt": BASE_TIME,
            "websiteUrl": "https://www.example.com/search?q=cats",
            "recordingDurationMs": 4200,
            "stepCount": 3,
            "elements": [
                {"selector": "#q", "action": "fill", "value": "cats", "timestamp": 1},
                {"selector": "#go", "action": "click", "timestamp": 2},
            ],
            "userNotes": "検索フォーム",
        },
    )
