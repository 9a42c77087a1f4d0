from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

ClassificationSource = Literal["llm", "rule"]


class Intent(str, Enum):
    SIMPLE_SEARCH = "simple_search"
    DEEP_SEARCH = "deep_search"
    OTHER = "other"

    @classmethod
    def normalize(cls, value: object) -> "Intent":
        """Map any model-provided value onto the closed set; unknown -> SIMPLE_SEARCH."""
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        return cls.SIMPLE_SEARCH


class AIBotMode(str, Enum):
    TEXT = "text-search"
    DEEP = "deep"

    @classmethod
    def parse(cls, value: object) -> "AIBotMode | None":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        return None


@dataclass(frozen=True)
class IntentClassificationResult:
    intent: Intent
    confidence: float
    source: ClassificationSource
    reason: str | None = None
    suggested_query: str | None = None
    raw_output: str | None = field(default=None, repr=False)

    def __post_init__(self):
        # confidence is always inside [0, 1], whatever the caller passed
        value = self.confidence
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
            value = 0.5
        object.__setattr__(self, "confidence", float(min(1.0, max(0.0, value))))

    def to_dict(self) -> dict:
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "suggested_query": self.suggested_query,
            "source": self.source,
            "raw_output": self.raw_output,
        }
