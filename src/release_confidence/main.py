"""FastAPI application for the release confidence service.

This module sets up the web API layer that wraps the agent. It provides:
- POST /assess - Assess the releases behind one or more compare URLs
- GET /health - Health check for load balancers and monitoring
- Automatic OpenAPI/Swagger documentation at /docs

Error mapping:
- ValueError (bad input, nothing fetched, invalid model output) -> 422
- TruncationExhaustedError (release too large for the model) -> 413
- Any other LLMError -> 502

To run locally:
    uvicorn release_confidence.main:app --reload --port 8000
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from release_confidence import __version__
from release_confidence.agent import AssessmentResult, ReleaseConfidenceAgent
from release_confidence.config import Config
from release_confidence.errors import LLMError, TruncationExhaustedError
from release_confidence.logging_config import get_logger, setup_logging
from release_confidence.schemas import UserGuidance

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Application Lifespan (startup/shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load configuration and create the agent once at startup."""
    config = Config.from_env()
    setup_logging(config.log_format, config.log_level)
    app.state.agent = ReleaseConfidenceAgent(config)
    logger.info("service_started", version=__version__, provider=config.model_provider)
    yield
    await app.state.agent.llm.close()


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Release Confidence Score",
    description="AI-powered release confidence assessment service",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.time()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_s=round(time.time() - start, 3),
        )
        return response


app.add_middleware(LoggingMiddleware)


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------


class AssessRequest(BaseModel):
    """Body of POST /assess.

    Attributes:
        compare_urls: GitHub / GitLab compare URLs making up the release
        guidance: Extra guidance for the analysis from the caller
    """

    compare_urls: list[str] = Field(..., min_length=1)
    guidance: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "detail": str(exc)},
    )


@app.exception_handler(TruncationExhaustedError)
async def truncation_exhausted_handler(
    request: Request, exc: TruncationExhaustedError
) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={"error": "release_too_large", "detail": str(exc)},
    )


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"error": "llm_error", "kind": exc.kind.value, "detail": str(exc)},
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.post("/assess", response_model=AssessmentResult)
async def assess_release(body: AssessRequest, request: Request) -> AssessmentResult:
    """Assess the releases behind the given compare URLs.

    Caller-supplied guidance is treated as authorized.
    """
    agent: ReleaseConfidenceAgent = request.app.state.agent
    extra = [UserGuidance(content=g, author="api", is_authorized=True) for g in request_guidance(body)]
    return await agent.assess(body.compare_urls, extra_guidance=extra)


def request_guidance(body: AssessRequest) -> list[str]:
    return [g.strip() for g in body.guidance if g.strip()]
