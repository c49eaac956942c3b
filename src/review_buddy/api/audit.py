"""Audit trail endpoint."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.api.schemas import AuditLogListResponse, AuditLogOut
from review_buddy.db.database import get_session
from review_buddy.reviews import service

router = APIRouter(prefix="/api", tags=["audit"])


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    action_type: str | None = Query(default=None, alias="actionType"),
    review_id: str | None = Query(default=None, alias="reviewId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
) -> AuditLogListResponse:
    """List audit entries newest first."""
    result = await service.list_audit_logs(
        session, action_type=action_type, review_id=review_id, page=page, limit=limit
    )
    return AuditLogListResponse(
        logs=[AuditLogOut.from_record(entry) for entry in result.logs],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )
