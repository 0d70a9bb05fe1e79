"""Search job orchestration: generate -> dispatch -> aggregate -> filter."""
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

import httpx

from search_aggregator.config import Settings
from search_aggregator.errors import AppError, CollaboratorError, TransportError
from search_aggregator.llm_client import OpenRouterChat
from search_aggregator.models.schemas import SearchRequest, SearchResponse
from search_aggregator.models.search import SearchResult, Stage
from search_aggregator.services import logger as log_service
from search_aggregator.services.aggregator import aggregate
from search_aggregator.services.deadline import Deadline
from search_aggregator.services.logger import logger
from search_aggregator.services.progress import ProgressSink
from search_aggregator.services.query_generator import LLMQueryGenerator, QueryGenerator
from search_aggregator.services.relevance_filter import ContentRelevanceFilter, SnippetBatchFilter
from search_aggregator.services.relevance_judge import LLMRelevanceJudge
from search_aggregator.services.search_dispatcher import SearchDispatcher
from search_aggregator.tools.content_fetcher import HttpContentFetcher
from search_aggregator.tools.searx_search import SearxSearch


class JobState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class OrchestrationJob:
    """One accepted search request and the deadline it must finish by."""

    request: SearchRequest
    deadline: Deadline
    rid: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: float = field(default_factory=time.monotonic)
    state: JobState = JobState.PENDING

    @classmethod
    def create(
        cls,
        request: SearchRequest,
        *,
        ceiling: float,
        budget_ms: int | None = None,
    ) -> "OrchestrationJob":
        seconds = ceiling
        if budget_ms is not None:
            seconds = min(ceiling, budget_ms / 1000)
        return cls(request=request, deadline=Deadline.after(seconds))

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class SearchOrchestrator:
    """Runs one search job through every stage and reports progress to a sink.

    Every failure leaves through `run` as an `AppError` except transport
    failures (`TransportError`, nothing left to report to) and cancellation.
    """

    def __init__(
        self,
        generator: QueryGenerator,
        dispatcher: SearchDispatcher,
        content_filter: ContentRelevanceFilter,
        batch_filter: SnippetBatchFilter,
        *,
        query_timeout: float = 60.0,
    ):
        self.generator = generator
        self.dispatcher = dispatcher
        self.content_filter = content_filter
        self.batch_filter = batch_filter
        self.query_timeout = query_timeout

    @classmethod
    def from_settings(
        cls,
        http_client: httpx.AsyncClient,
        chat: OpenRouterChat,
        settings: Settings,
    ) -> "SearchOrchestrator":
        judge = LLMRelevanceJudge(
            chat,
            batch_max_tokens=settings.filter_max_tokens,
            single_max_tokens=settings.content_max_tokens,
            snippet_chars=settings.snippet_truncation_length,
            content_chars=settings.content_truncation_length,
        )
        backend = SearxSearch(
            http_client,
            base_url=settings.searx_url,
            language=settings.searx_language,
            locale=settings.searx_locale,
            timeout=settings.search_query_timeout,
        )
        fetcher = HttpContentFetcher(
            http_client,
            max_bytes=settings.content_max_bytes,
            timeout=settings.content_fetch_timeout,
        )
        return cls(
            LLMQueryGenerator(chat, max_tokens=settings.query_max_tokens),
            SearchDispatcher(
                backend,
                max_concurrency=settings.max_concurrent_queries,
                query_timeout=settings.search_query_timeout,
            ),
            ContentRelevanceFilter(
                fetcher,
                judge,
                max_concurrency=settings.max_concurrent_content,
                fetch_timeout=settings.content_fetch_timeout,
                judge_timeout=settings.content_relevance_timeout,
                replace_snippet=settings.replace_snippet_with_content,
            ),
            SnippetBatchFilter(
                judge,
                max_items=settings.max_items_to_filter,
                timeout=settings.ai_relevance_timeout,
            ),
            query_timeout=settings.query_generation_timeout,
        )

    async def run(self, job: OrchestrationJob, sink: ProgressSink) -> SearchResponse:
        job.state = JobState.RUNNING
        with logger.contextualize(rid=job.rid):
            log_service.log_job_stage(job.rid, "job", "started", {"prompt": job.request.prompt[:100]})
            try:
                async with job.deadline.scope():
                    response = await self._run_stages(job, sink)
            except TimeoutError:
                job.state = JobState.FAILED
                log_service.log_job_stage(job.rid, "job", "failed", {"code": "TIMEOUT"})
                raise AppError.timeout(f"job exceeded its deadline after {job.elapsed_ms} ms") from None
            except (AppError, TransportError) as exc:
                job.state = JobState.FAILED
                log_service.log_job_stage(job.rid, "job", "failed", {"error": str(exc)})
                raise
            except asyncio.CancelledError:
                job.state = JobState.FAILED
                log_service.log_job_stage(job.rid, "job", "cancelled")
                raise
            except Exception as exc:
                job.state = JobState.FAILED
                logger.exception(f"search job crashed: {exc!r}")
                raise AppError.internal(exc) from exc

            job.state = JobState.COMPLETED
            log_service.log_job_stage(
                job.rid,
                "job",
                "completed",
                {"results": len(response.results), "elapsed_ms": job.elapsed_ms},
            )
            return response

    def _check_deadline(self, job: OrchestrationJob, stage: Stage) -> None:
        if job.deadline.expired:
            raise AppError.timeout(f"deadline exceeded after {stage.value}")

    async def _generate(self, job: OrchestrationJob, sink: ProgressSink) -> list[str]:
        request = job.request
        progress = await sink.start_stage(
            Stage.GENERATING_QUERIES, 1, "Generating search queries..."
        )
        try:
            async with job.deadline.child(self.query_timeout).scope():
                queries = await self.generator.generate(request.prompt, request.settings.queries)
        except (CollaboratorError, TimeoutError) as exc:
            log_service.log_job_stage(job.rid, Stage.GENERATING_QUERIES, "failed", {"error": repr(exc)})
            if job.deadline.expired:
                raise AppError.timeout("deadline exceeded while generating queries") from exc
            raise AppError.query_generation_failed(exc) from exc
        await progress.advance()
        log_service.log_job_stage(job.rid, Stage.GENERATING_QUERIES, "completed", {"queries": queries})
        return queries

    async def _search(
        self, job: OrchestrationJob, queries: list[str], sink: ProgressSink
    ) -> list[SearchResult]:
        try:
            raw = await self.dispatcher.dispatch(
                queries, job.request.settings.engines, job.deadline, sink
            )
        except (CollaboratorError, TimeoutError) as exc:
            log_service.log_job_stage(job.rid, Stage.SEARCHING, "failed", {"error": repr(exc)})
            if job.deadline.expired:
                raise AppError.timeout("deadline exceeded while searching") from exc
            raise AppError.search_failed(exc) from exc
        log_service.log_job_stage(job.rid, Stage.SEARCHING, "completed", {"raw_results": len(raw)})
        return raw

    async def _run_stages(self, job: OrchestrationJob, sink: ProgressSink) -> SearchResponse:
        request = job.request

        queries = await self._generate(job, sink)
        self._check_deadline(job, Stage.GENERATING_QUERIES)

        raw = await self._search(job, queries, sink)
        self._check_deadline(job, Stage.SEARCHING)

        progress = await sink.start_stage(Stage.PROCESSING, 1, "Processing results...")
        ranked = aggregate(raw)
        await progress.advance()
        log_service.log_job_stage(
            job.rid, Stage.PROCESSING, "completed", {"raw": len(raw), "unique": len(ranked)}
        )
        self._check_deadline(job, Stage.PROCESSING)

        if request.settings.content_mode:
            results = await self.content_filter.filter(request.prompt, ranked, job.deadline, sink)
            log_service.log_job_stage(
                job.rid, Stage.ANALYZING_CONTENT, "completed", {"kept": len(results)}
            )
            self._check_deadline(job, Stage.ANALYZING_CONTENT)
        elif request.settings.ai_filter:
            results = await self.batch_filter.filter(request.prompt, ranked, job.deadline, sink)
            log_service.log_job_stage(job.rid, Stage.AI_FILTERING, "completed", {"kept": len(results)})
            self._check_deadline(job, Stage.AI_FILTERING)
        else:
            results = ranked

        return SearchResponse(queries=queries, results=results)
