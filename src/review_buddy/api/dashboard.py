"""Dashboard statistics endpoint."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.db.database import get_session
from review_buddy.reviews.service import dashboard_stats

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def stats(session: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Overview counts, queue sizes, latest system health and chart data."""
    return await dashboard_stats(session)
