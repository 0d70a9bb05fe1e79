"""Progress reporting for search jobs.

A `ProgressSink` receives staged status updates. Every stage is tracked by a
`StageProgress` that walks `idle -> evaluating -> done`; its completion counter
is advanced while the sink's lock is held, so the counter value and the order
in which status frames reach the connection always agree.

Two sinks are provided:

* `SilentProgressSink` drops every update (one-shot request/response).
* `StreamingProgressSink` writes updates as `status` envelopes to a
  `SafeConnection`, which may be shared by several concurrent jobs.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from search_aggregator.errors import TransportError
from search_aggregator.models.events import Envelope
from search_aggregator.models.search import ProgressEvent, Stage, StageState
from search_aggregator.services import streaming
from search_aggregator.services.logger import logger

Sender = Callable[[dict[str, Any]], Awaitable[None]]


class SafeConnection:
    """Single-writer guard around an outbound message channel."""

    def __init__(self, send: Sender):
        self._send = send
        self.lock = asyncio.Lock()
        self.closed = False

    async def write(self, envelope: Envelope) -> None:
        async with self.lock:
            await self.write_locked(envelope)

    async def write_locked(self, envelope: Envelope) -> None:
        """Write while the caller already holds `lock`."""
        if self.closed:
            raise TransportError("connection is closed")
        try:
            await self._send(envelope.to_dict())
        except Exception as exc:
            self.closed = True
            raise TransportError(f"failed to send {envelope.type.value} message: {exc}") from exc

    def close(self) -> None:
        self.closed = True


class StageProgress:
    def __init__(self, sink: "ProgressSink", stage: Stage, total: int, step_message: str):
        self.sink = sink
        self.stage = stage
        self.total = max(total, 0)
        self.step_message = step_message
        self.completed = 0
        self.state = StageState.IDLE

    def start(self) -> None:
        self.state = StageState.DONE if self.total == 0 else StageState.EVALUATING

    def step(self, count: int = 1) -> int:
        if self.state is not StageState.EVALUATING:
            raise RuntimeError(f"stage {self.stage.value} is {self.state.value}, cannot advance")
        if count < 1 or self.completed + count > self.total:
            raise RuntimeError(
                f"stage {self.stage.value} cannot advance by {count} from "
                f"{self.completed}/{self.total}"
            )
        self.completed += count
        if self.completed == self.total:
            self.state = StageState.DONE
        return self.completed

    @property
    def done(self) -> bool:
        return self.state is StageState.DONE

    async def advance(self, count: int = 1) -> None:
        await self.sink.advance(self, count)


class ProgressSink(ABC):
    """Base sink: serializes counter updates and frame writes behind one lock."""

    def __init__(self, lock: asyncio.Lock | None = None):
        self._lock = lock or asyncio.Lock()

    @abstractmethod
    async def _write(self, event: ProgressEvent) -> None: ...

    async def emit(self, stage: Stage, completed: int, total: int, message: str) -> None:
        async with self._lock:
            await self._write(ProgressEvent.now(stage, completed, total, message))

    async def start_stage(
        self,
        stage: Stage,
        total: int,
        message: str,
        step_message: str = "Completed: {completed}/{total}",
    ) -> StageProgress:
        progress = StageProgress(self, stage, total, step_message)
        async with self._lock:
            progress.start()
            await self._write(ProgressEvent.now(stage, 0, progress.total, message))
        return progress

    async def advance(self, progress: StageProgress, count: int = 1) -> None:
        async with self._lock:
            completed = progress.step(count)
            message = progress.step_message.format(completed=completed, total=progress.total)
            await self._write(ProgressEvent.now(progress.stage, completed, progress.total, message))


class SilentProgressSink(ProgressSink):
    async def _write(self, event: ProgressEvent) -> None:
        return None


class StreamingProgressSink(ProgressSink):
    """Writes status envelopes for one job onto a (possibly shared) connection."""

    def __init__(self, connection: SafeConnection):
        super().__init__(lock=connection.lock)
        self.connection = connection

    async def _write(self, event: ProgressEvent) -> None:
        await self.connection.write_locked(streaming.status(event))


class LoggingProgressSink(ProgressSink):
    """Reports each update through the application logger (CLI runs)."""

    async def _write(self, event: ProgressEvent) -> None:
        logger.info(f"[{event.stage.value}] {event.completed}/{event.total} {event.message}")
