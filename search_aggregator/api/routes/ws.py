from __future__ import annotations

from fastapi import APIRouter, WebSocket, status

from search_aggregator.config import settings
from search_aggregator.services import logger as log_service
from search_aggregator.services.session import StreamingSession

router = APIRouter(tags=["search"])


def origin_allowed(origin: str | None, allowed: list[str]) -> bool:
    if not allowed or "*" in allowed:
        return True
    return origin is not None and origin.rstrip("/") in {o.rstrip("/") for o in allowed}


@router.websocket("/ws/search")
async def search_socket(websocket: WebSocket):
    """Streaming search: many jobs per connection, each ending in one terminal message."""
    origin = websocket.headers.get("origin")
    if not origin_allowed(origin, settings.ws_allowed_origin_list):
        log_service.log_event(
            event_type="ws_rejected",
            message="WebSocket origin not allowed",
            origin=origin,
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    active: set[WebSocket] = websocket.app.state.ws_connections
    if len(active) >= settings.ws_max_connections:
        log_service.log_event(
            event_type="ws_rejected",
            message="WebSocket connection limit reached",
            limit=settings.ws_max_connections,
        )
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    active.add(websocket)
    try:
        session = StreamingSession(websocket, websocket.app.state.orchestrator, settings)
        await session.serve()
    finally:
        active.discard(websocket)
