from __future__ import annotations

import asyncio
import json as _json
from typing import Any

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from search_aggregator.api.deps import get_orchestrator, get_settings
from search_aggregator.config import Settings
from search_aggregator.models.events import MessageType
from search_aggregator.models.schemas import (
    ErrorResponse,
    SearchRequest,
    SearchResponse,
    StreamSearchPayload,
)
from search_aggregator.services import logger as log_service
from search_aggregator.services.orchestrator import OrchestrationJob, SearchOrchestrator
from search_aggregator.services.progress import SafeConnection, SilentProgressSink
from search_aggregator.services.session import run_streaming_job
from search_aggregator.services.validation import accept_search_request

router = APIRouter(prefix="/api/search", tags=["search"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}
TERMINAL_TYPES = {MessageType.SEARCH_COMPLETE.value, MessageType.ERROR.value}


@router.post("", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search(
    request: SearchRequest,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    app_settings: Settings = Depends(get_settings),
):
    """Run one search job and return the filtered, ranked results."""
    accepted = accept_search_request(request, app_settings)
    job = OrchestrationJob.create(accepted, ceiling=app_settings.search_job_timeout)
    log_service.log_event(
        event_type="job_accepted",
        message="One-shot search job accepted",
        rid=job.rid,
        prompt=accepted.prompt[:100],
    )
    return await orchestrator.run(job, SilentProgressSink())


@router.post("/stream", responses={400: {"model": ErrorResponse}})
async def search_stream(
    payload: StreamSearchPayload,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    app_settings: Settings = Depends(get_settings),
):
    """SSE endpoint that streams status events and one terminal event for a job."""
    accepted = accept_search_request(payload, app_settings)
    job = OrchestrationJob.create(
        accepted,
        ceiling=app_settings.search_job_timeout,
        budget_ms=payload.budget_ms,
    )
    log_service.log_event(
        event_type="job_accepted",
        message="Streaming search job accepted",
        rid=job.rid,
        prompt=accepted.prompt[:100],
    )

    async def event_generator():
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        connection = SafeConnection(queue.put)
        task = asyncio.create_task(run_streaming_job(orchestrator, job, connection))
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    # job finished; drain whatever it queued before stopping
                    while not queue.empty():
                        yield _to_sse(queue.get_nowait())
                    break
                message = getter.result()
                yield _to_sse(message)
                if message["type"] in TERMINAL_TYPES:
                    break
        finally:
            connection.close()
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    return EventSourceResponse(event_generator())


def _to_sse(message: dict[str, Any]) -> dict[str, str]:
    return {"event": message["type"], "data": _json.dumps(message["data"])}

