"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from review_buddy.api.audit import router as audit_router
from review_buddy.api.dashboard import router as dashboard_router
from review_buddy.api.health import router as health_router
from review_buddy.api.reviews import router as reviews_router
from review_buddy.api.slack import router as slack_router
from review_buddy.config import settings
from review_buddy.kiyoh.client import KiyohAPIError, KiyohNotConfiguredError
from review_buddy.llm.exceptions import LLMProviderNotConfiguredError
from review_buddy.reviews.service import PublishError
from review_buddy.triage.pipeline import BrandConfigNotFoundError, ReviewNotFoundError

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Review triage: risk assessment, decisions, drafted replies and alerts",
    version="0.1.0",
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(reviews_router)
app.include_router(audit_router)
app.include_router(dashboard_router)
app.include_router(slack_router)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(ReviewNotFoundError)
async def review_not_found(request: Request, exc: ReviewNotFoundError) -> JSONResponse:
    return _error(404, "Review not found")


@app.exception_handler(BrandConfigNotFoundError)
async def brand_not_found(request: Request, exc: BrandConfigNotFoundError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(PublishError)
async def publish_error(request: Request, exc: PublishError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(KiyohNotConfiguredError)
async def kiyoh_not_configured(request: Request, exc: KiyohNotConfiguredError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(KiyohAPIError)
async def kiyoh_error(request: Request, exc: KiyohAPIError) -> JSONResponse:
    logger.error(f"Kiyoh request failed ({exc.status_code}): {exc}")
    return _error(502, str(exc))


@app.exception_handler(LLMProviderNotConfiguredError)
async def llm_not_configured(request: Request, exc: LLMProviderNotConfiguredError) -> JSONResponse:
    return _error(500, "LLM API key not configured")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic application info."""
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }
