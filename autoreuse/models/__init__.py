# モデルモジュール
# 永続化スキーマとイベント定義を提供

from .events import (
    AutomationEvent,
    AutomationImplementedEvent,
    AutomationRequestedEvent,
    RecordedElement,
    RecordingMetadata,
    parse_event,
)
from .schema import (
    INITIAL_CONFIDENCE,
    REQUEST_EVENT_TYPE,
    SCHEMA_VERSION,
    AutomationMetadata,
    AutomationSearchCriteria,
    DoNotAskFor,
    MatchingRules,
    ReusePreference,
    StoredAutomation,
)

__all__ = [
    "INITIAL_CONFIDENCE",
    "REQUEST_EVENT_TYPE",
    "SCHEMA_VERSION",
    "AutomationEvent",
    "AutomationImplementedEvent",
    "AutomationMetadata",
    "AutomationRequestedEvent",
    "AutomationSearchCriteria",
    "DoNotAskFor",
    "MatchingRules",
    "RecordedElement",
    "RecordingMetadata",
    "ReusePreference",
    "StoredAutomation",
    "parse_event",
]
