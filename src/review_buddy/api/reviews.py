"""Review endpoints: listing, editing, processing, publishing, importing."""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.api.dependencies import get_brand_settings, get_processor
from review_buddy.api.schemas import (
    AuditLogOut,
    FetchReviewsRequest,
    FetchReviewsResponse,
    ImportCounts,
    InviteRequest,
    MessageResponse,
    PublishRequest,
    ReviewDetailResponse,
    ReviewListResponse,
    ReviewOut,
    ReviewUpdateRequest,
)
from review_buddy.brand import BrandSettings
from review_buddy.db.database import get_session
from review_buddy.llm.exceptions import LLMProviderNotConfiguredError
from review_buddy.reviews import service
from review_buddy.reviews.importer import import_reviews
from review_buddy.triage.pipeline import (
    BrandConfigNotFoundError,
    FinalEvent,
    ProcessingEvent,
    ReviewNotFoundError,
    ReviewProcessor,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reviews"])

SSE_DONE = "data: [DONE]\n\n"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def sse_frames(events: AsyncIterator[ProcessingEvent]) -> AsyncIterator[str]:
    """Serialize processing events as server-sent event frames.

    A successful run ends with the final result followed by ``[DONE]``;
    a failed run ends with the error frame alone.
    """
    async for event in events:
        yield f"data: {json.dumps(event.to_dict())}\n\n"
        if isinstance(event, FinalEvent):
            yield SSE_DONE


@router.get("/reviews", response_model=ReviewListResponse)
async def list_reviews(
    status: str | None = None,
    decision: str | None = None,
    platform: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> ReviewListResponse:
    """List reviews newest first, optionally filtered."""
    result = await service.list_reviews(
        session,
        service.ReviewFilters(status=status, decision=decision, platform=platform),
        page=page,
        limit=limit,
    )
    return ReviewListResponse(
        reviews=[ReviewOut.from_record(r) for r in result.reviews],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.post("/reviews/fetch", response_model=FetchReviewsResponse)
async def fetch_reviews(
    request: FetchReviewsRequest | None = None,
    session: AsyncSession = Depends(get_session),
    brand: BrandSettings = Depends(get_brand_settings),
) -> FetchReviewsResponse:
    """Import the newest reviews from Kiyoh."""
    request = request or FetchReviewsRequest()
    result = await import_reviews(
        session, brand, date_since=request.date_since, limit=request.limit
    )
    return FetchReviewsResponse(
        fetched=result.fetched,
        imported=ImportCounts(new=result.new, updated=result.updated),
        new_review_ids=result.new_review_ids,
        location_name=result.location_name,
        average_rating=result.average_rating,
        total_reviews=result.total_reviews,
    )


@router.get("/reviews/{review_id}", response_model=ReviewDetailResponse)
async def get_review(
    review_id: str, session: AsyncSession = Depends(get_session)
) -> ReviewDetailResponse:
    """Get a review with its 20 most recent audit entries."""
    detail = await service.get_review(session, review_id)
    return ReviewDetailResponse(
        **ReviewOut.from_record(detail.review).model_dump(),
        audit_logs=[AuditLogOut.from_record(entry) for entry in detail.audit_logs],
    )


@router.patch("/reviews/{review_id}", response_model=ReviewOut)
async def update_review(
    review_id: str,
    request: ReviewUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> ReviewOut | JSONResponse:
    """Apply a person's changes to a review."""
    try:
        review = await service.update_review(
            session, review_id, request.changes(), acting_user_id=request.acting_user_id
        )
    except ValueError as e:
        return _error(400, str(e))
    return ReviewOut.from_record(review)


@router.post("/reviews/{review_id}/process", response_model=None)
async def process_review(
    review_id: str,
    processor: ReviewProcessor = Depends(get_processor),
) -> StreamingResponse | JSONResponse:
    """Process a review, streaming step events as server-sent events.

    Preconditions are checked before the stream opens and fail with a plain
    JSON error. Once streaming, the run continues even if the client leaves.
    """
    try:
        context = await processor.prepare(review_id)
    except ValueError as e:
        return _error(400, str(e))
    except ReviewNotFoundError:
        return _error(404, "Review not found")
    except BrandConfigNotFoundError as e:
        return _error(400, str(e))
    except LLMProviderNotConfiguredError as e:
        logger.error(f"Cannot process review {review_id}: {e}")
        return _error(500, "LLM API key not configured")

    return StreamingResponse(
        sse_frames(processor.stream(context)),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/reviews/{review_id}/publish", response_model=MessageResponse)
async def publish_response(
    review_id: str,
    request: PublishRequest | None = None,
    session: AsyncSession = Depends(get_session),
    brand: BrandSettings = Depends(get_brand_settings),
) -> MessageResponse:
    """Publish the drafted reply to Kiyoh."""
    request = request or PublishRequest()
    await service.publish_response(
        session,
        review_id,
        brand,
        response_type=request.response_type,
        send_email=request.send_email,
        acting_user_id=request.acting_user_id,
    )
    return MessageResponse(message="Response published to Kiyoh")


@router.post("/invites", response_model=MessageResponse)
async def send_invite(
    request: InviteRequest,
    session: AsyncSession = Depends(get_session),
    brand: BrandSettings = Depends(get_brand_settings),
) -> MessageResponse:
    """Invite a customer to leave a review."""
    await service.send_invite(
        session,
        brand,
        request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        delay=request.delay,
        language=request.language,
        ref_code=request.ref_code,
        acting_user_id=request.acting_user_id,
    )
    return MessageResponse(message="Invite sent successfully")
