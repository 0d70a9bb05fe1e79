"""Centralized logging service using loguru."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from search_aggregator.config import settings

LOG_DIR = Path("logs")
LOG_DIR.mkdir(exist_ok=True)

logger.remove()
logger.configure(extra={"rid": "-"})

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | rid={extra[rid]} - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "search_aggregator_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | rid={extra[rid]} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str, ensure_ascii=False)


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log an OpenRouter chat completion call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {_dump(call_data)}")
    else:
        logger.info(f"LLM_CALL: {_dump(call_data)}")


def log_job_stage(
    rid: str,
    stage: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a search job stage transition."""
    stage_data = {
        "timestamp": _now(),
        "rid": rid,
        "stage": stage,
        "status": status,
        "data": data,
    }
    if status == "failed":
        logger.warning(f"JOB_STAGE: {_dump(stage_data)}")
    else:
        logger.info(f"JOB_STAGE: {_dump(stage_data)}")


def log_collaborator_exchange(
    collaborator: str,
    direction: str,
    payload: Any,
) -> None:
    """Log a raw collaborator request/response body when request debugging is on."""
    if not settings.debug_log_requests:
        return
    logger.debug(
        f"COLLABORATOR_{direction.upper()}: "
        f"{_dump({'timestamp': _now(), 'collaborator': collaborator, 'payload': payload})}"
    )


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {_dump(event_data)}")
