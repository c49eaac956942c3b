"""Liveness and readiness checks."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from review_buddy.brand import BrandSettings, get_active_brand_config
from review_buddy.db.database import async_session_maker
from review_buddy.llm.exceptions import LLMProviderNotConfiguredError
from review_buddy.llm.factory import get_llm

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
async def ready() -> dict[str, Any]:
    """Check what a processing run needs: the database, the active brand's
    LLM, and (informational only) the review platform credentials.
    """
    services: dict[str, str] = {}
    degraded = False
    brand: BrandSettings | None = None

    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            config = await get_active_brand_config(session)
            if config is not None:
                brand = BrandSettings.from_record(config)
        services["database"] = "ok"
    except Exception as e:
        services["database"] = f"error: {type(e).__name__}"
        degraded = True

    services["brand"] = brand.company_name if brand else "warning: no active brand configuration"
    services["kiyoh"] = "configured" if brand and brand.kiyoh_configured else "not configured"

    try:
        llm = await get_llm(api_key=brand.gemini_api_key if brand else None)
        if await llm.check_health():
            services["llm"] = f"ok ({llm.provider_name})"
        else:
            services["llm"] = f"error: {llm.provider_name} not healthy"
            degraded = True
    except LLMProviderNotConfiguredError:
        services["llm"] = "warning: no LLM credentials configured"
    except Exception as e:
        services["llm"] = f"error: {type(e).__name__}"
        degraded = True

    return {"status": "degraded" if degraded else "ready", "services": services}
