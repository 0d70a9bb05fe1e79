from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from search_aggregator.api.routes import search, ws
from search_aggregator.config import settings
from search_aggregator.errors import AppError
from search_aggregator.llm_client import get_client
from search_aggregator.services import logger as log_service
from search_aggregator.services.orchestrator import SearchOrchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    http_client = httpx.AsyncClient(
        headers={"User-Agent": "search-aggregator/0.1"},
        limits=httpx.Limits(max_connections=50),
    )
    chat = get_client(settings)
    app.state.orchestrator = SearchOrchestrator.from_settings(http_client, chat, settings)
    app.state.ws_connections = set()
    log_service.log_event(event_type="startup", message="Search aggregator started")
    yield
    # Shutdown
    await chat.aclose()
    await http_client.aclose()
    log_service.log_event(event_type="shutdown", message="Search aggregator stopped")


app = FastAPI(
    title="Search Aggregator",
    description="LLM-assisted web search aggregation over SearxNG",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = AppError.invalid_request(str(exc.errors()))
    return JSONResponse(status_code=err.status, content={"error": err.to_dict()})


# Routes
app.include_router(search.router)
app.include_router(ws.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "search-aggregator"}
