"""Error types for the search aggregator."""
from __future__ import annotations

from typing import Any


class SearchAggregatorError(Exception):
    """Base exception for search aggregator errors."""

    pass


class CollaboratorError(SearchAggregatorError):
    """Raised when an external collaborator call fails."""

    pass


class GenerationFailed(CollaboratorError):
    """Raised when the query generator cannot produce usable queries."""

    pass


class SearchBackendError(CollaboratorError):
    """Raised when the web-search backend fails for a query."""

    pass


class FetchFailed(CollaboratorError):
    """Raised when page content cannot be fetched or extracted."""

    pass


class JudgeFailed(CollaboratorError):
    """Raised when the relevance judge call fails or replies unparseably."""

    pass


class TransportError(SearchAggregatorError):
    """Raised when a message cannot be delivered on the outbound connection."""

    pass


class AppError(SearchAggregatorError):
    """Structured, job-terminal error surfaced to callers as {code, message, details}."""

    def __init__(self, code: str, message: str, details: str = "", status: int = 500):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.details = details
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    @classmethod
    def invalid_request(cls, details: str = "") -> "AppError":
        return cls("INVALID_REQUEST", "Invalid request format", details, 400)

    @classmethod
    def validation_failed(cls, details: str = "") -> "AppError":
        return cls("VALIDATION_FAILED", "Request validation failed", details, 400)

    @classmethod
    def query_generation_failed(cls, exc: BaseException) -> "AppError":
        return cls("QUERY_GENERATION_FAILED", "Failed to generate queries", str(exc), 500)

    @classmethod
    def search_failed(cls, exc: BaseException) -> "AppError":
        return cls("SEARCH_FAILED", "Search failed", str(exc), 500)

    @classmethod
    def timeout(cls, details: str = "") -> "AppError":
        return cls("TIMEOUT", "Search job deadline exceeded", details, 504)

    @classmethod
    def cancelled(cls, details: str = "") -> "AppError":
        return cls("CANCELLED", "Search job was cancelled", details, 499)

    @classmethod
    def internal(cls, exc: BaseException) -> "AppError":
        return cls(
            "INTERNAL_ERROR",
            "Internal server error",
            f"{type(exc).__name__}: {exc}",
            500,
        )
