from __future__ import annotations

from search_aggregator.config import Settings
from search_aggregator.errors import AppError
from search_aggregator.models.schemas import SearchRequest


def sanitize(request: SearchRequest, settings: Settings) -> SearchRequest:
    """Normalize user input: trimmed prompt, lower-cased unique engines, default query count."""
    engines: list[str] = []
    for engine in request.settings.engines:
        name = engine.strip().lower()
        if name and name not in engines:
            engines.append(name)

    queries = request.settings.queries or settings.default_query_count
    return request.model_copy(
        update={
            "prompt": request.prompt.strip(),
            "settings": request.settings.model_copy(
                update={"engines": engines, "queries": queries}
            ),
        }
    )


def validate(request: SearchRequest, settings: Settings) -> list[str]:
    issues: list[str] = []

    if not request.prompt:
        issues.append("prompt: must not be empty")
    elif len(request.prompt) > settings.max_prompt_length:
        issues.append(f"prompt: must be at most {settings.max_prompt_length} characters")

    queries = request.settings.queries
    if queries < 1 or queries > settings.max_query_count:
        issues.append(f"settings.queries: must be between 1 and {settings.max_query_count}")

    engines = request.settings.engines
    if len(engines) > settings.max_engine_count:
        issues.append(f"settings.engines: at most {settings.max_engine_count} engines allowed")
    supported = settings.supported_engine_set
    unknown = [engine for engine in engines if engine not in supported]
    if unknown:
        issues.append(f"settings.engines: unsupported engine(s) {', '.join(unknown)}")

    return issues


def accept_search_request(request: SearchRequest, settings: Settings) -> SearchRequest:
    """Sanitize then validate; raises `AppError` (VALIDATION_FAILED) listing every issue."""
    cleaned = sanitize(request, settings)
    issues = validate(cleaned, settings)
    if issues:
        raise AppError.validation_failed("; ".join(issues))
    return cleaned
