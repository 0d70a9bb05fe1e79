from __future__ import annotations

from starlette.requests import HTTPConnection

from search_aggregator.config import Settings, settings
from search_aggregator.services.orchestrator import SearchOrchestrator


def get_orchestrator(conn: HTTPConnection) -> SearchOrchestrator:
    """Return the orchestrator built by the application lifespan."""
    return conn.app.state.orchestrator


def get_settings() -> Settings:
    return settings
