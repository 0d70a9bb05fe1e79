"""Streaming delivery of search jobs over a long-lived connection.

A `StreamingSession` owns one WebSocket. Each inbound `search` message starts
an independent job task; all of them share the connection's `SafeConnection`
so frames from concurrent jobs never interleave mid-write. When the client
goes away every outstanding job is cancelled and awaited.
"""
from __future__ import annotations

import asyncio
import json

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from search_aggregator.config import Settings
from search_aggregator.errors import AppError, TransportError
from search_aggregator.models.events import MessageType
from search_aggregator.models.schemas import InboundMessage, StreamSearchPayload
from search_aggregator.services import logger as log_service
from search_aggregator.services import streaming
from search_aggregator.services.logger import logger
from search_aggregator.services.orchestrator import OrchestrationJob, SearchOrchestrator
from search_aggregator.services.progress import SafeConnection, StreamingProgressSink
from search_aggregator.services.validation import accept_search_request


async def run_streaming_job(
    orchestrator: SearchOrchestrator,
    job: OrchestrationJob,
    connection: SafeConnection,
) -> None:
    """Run one job and deliver exactly one terminal envelope for it."""
    sink = StreamingProgressSink(connection)
    try:
        response = await orchestrator.run(job, sink)
        await connection.write(
            streaming.search_complete(response.queries, response.results, job.elapsed_ms)
        )
    except AppError as exc:
        try:
            await connection.write(streaming.error(exc))
        except TransportError as send_exc:
            logger.warning(f"could not deliver error for job {job.rid}: {send_exc}")
    except TransportError as exc:
        logger.warning(f"connection lost during job {job.rid}: {exc}")
    except asyncio.CancelledError:
        if not connection.closed:
            try:
                await asyncio.shield(
                    connection.write(streaming.error(AppError.cancelled(f"job {job.rid} cancelled")))
                )
            except (TransportError, asyncio.CancelledError) as send_exc:
                logger.debug(f"cancellation notice for job {job.rid} not delivered: {send_exc!r}")
        raise


class StreamingSession:
    def __init__(self, websocket: WebSocket, orchestrator: SearchOrchestrator, settings: Settings):
        self.websocket = websocket
        self.orchestrator = orchestrator
        self.settings = settings
        self.connection = SafeConnection(websocket.send_json)
        self.jobs: set[asyncio.Task] = set()

    async def reject(self, error: AppError) -> None:
        try:
            await self.connection.write(streaming.error(error))
        except TransportError as exc:
            logger.warning(f"could not deliver rejection: {exc}")

    def start_job(self, payload: StreamSearchPayload) -> asyncio.Task:
        request = accept_search_request(payload, self.settings)
        job = OrchestrationJob.create(
            request,
            ceiling=self.settings.search_job_timeout,
            budget_ms=payload.budget_ms,
        )
        log_service.log_event(
            event_type="job_accepted",
            message="Streaming search job accepted",
            rid=job.rid,
            prompt=request.prompt[:100],
        )
        task = asyncio.create_task(run_streaming_job(self.orchestrator, job, self.connection))
        self.jobs.add(task)
        task.add_done_callback(self.jobs.discard)
        return task

    async def handle_message(self, raw: str) -> None:
        if len(raw.encode("utf-8")) > self.settings.ws_max_message_size:
            await self.reject(
                AppError.invalid_request(
                    f"message exceeds {self.settings.ws_max_message_size} bytes"
                )
            )
            return

        try:
            message = InboundMessage.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            await self.reject(AppError.invalid_request(str(exc)))
            return

        if message.type != MessageType.SEARCH.value:
            await self.reject(AppError.invalid_request(f"unknown message type: {message.type!r}"))
            return

        try:
            payload = StreamSearchPayload.model_validate(message.data)
        except ValidationError as exc:
            await self.reject(AppError.invalid_request(str(exc)))
            return

        try:
            self.start_job(payload)
        except AppError as exc:
            await self.reject(exc)

    async def serve(self) -> None:
        try:
            while True:
                raw = await self.websocket.receive_text()
                await self.handle_message(raw)
        except WebSocketDisconnect:
            logger.info("websocket client disconnected")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        self.connection.close()
        jobs = list(self.jobs)
        for task in jobs:
            task.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
            logger.info(f"cancelled {len(jobs)} outstanding job(s) on disconnect")
