from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from search_aggregator.models.search import SearchResult


# --- Requests ---


class SearchSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    queries: int = 0  # 0 = server default
    content_mode: bool = False
    engines: list[str] = Field(default_factory=list)
    ai_filter: bool = True


class SearchRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    settings: SearchSettings = Field(default_factory=SearchSettings)


class StreamSearchPayload(SearchRequest):
    budget_ms: int | None = Field(default=None, gt=0)


class InboundMessage(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


# --- Responses ---


class SearchResponse(BaseModel):
    queries: list[str]
    results: list[SearchResult]


class ErrorBody(BaseModel):
    code: str
    message: str
    details: str = ""


class ErrorResponse(BaseModel):
    error: ErrorBody
