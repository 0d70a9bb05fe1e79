from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


@dataclass(slots=True)
class SearchResult:
    title: str
    url: str
    snippet: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FailureKind(StrEnum):
    NONE = "none"
    FETCH = "fetch"
    JUDGE = "judge"


@dataclass(frozen=True, slots=True)
class RelevanceVerdict:
    index: int
    keep: bool
    failure: FailureKind = FailureKind.NONE
    content: str | None = None


class Stage(StrEnum):
    GENERATING_QUERIES = "generating_queries"
    SEARCHING = "searching"
    PROCESSING = "processing"
    ANALYZING_CONTENT = "analyzing_content"
    AI_FILTERING = "ai_filtering"


class StageState(StrEnum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    stage: Stage
    completed: int
    total: int
    message: str
    timestamp: int

    @classmethod
    def now(cls, stage: Stage, completed: int, total: int, message: str) -> "ProgressEvent":
        return cls(
            stage=stage,
            completed=completed,
            total=total,
            message=message,
            timestamp=int(time.time() * 1000),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "progress": self.completed,
            "total": self.total,
            "message": self.message,
            "timestamp": self.timestamp,
        }
