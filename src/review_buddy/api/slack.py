"""Manual Slack alerts."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.api.dependencies import get_brand_settings, get_slack_notifier
from review_buddy.api.schemas import MessageResponse, SlackAlertRequest
from review_buddy.brand import BrandSettings
from review_buddy.db.database import get_session
from review_buddy.notifications import NotificationStatus, SlackNotifier
from review_buddy.reviews import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["slack"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/slack", response_model=MessageResponse)
async def send_slack_alert(
    request: SlackAlertRequest,
    session: AsyncSession = Depends(get_session),
    brand: BrandSettings = Depends(get_brand_settings),
    notifier: SlackNotifier = Depends(get_slack_notifier),
) -> MessageResponse | JSONResponse:
    """Send a review alert, or a free-text message, to the brand's Slack channel."""
    if not brand.slack_configured:
        return _error(400, "Slack integration not configured or disabled")

    if request.review_id:
        result = await service.send_slack_alert(
            session,
            request.review_id,
            brand,
            acting_user_id=request.acting_user_id,
            notifier=notifier,
        )
    elif request.custom_message:
        result = await notifier.send_text(brand, request.custom_message)
    else:
        return _error(400, "Either reviewId or customMessage is required")

    if result.status != NotificationStatus.SENT:
        logger.error(f"Slack notification error: {result.message}")
        return _error(500, "Failed to send Slack notification")
    return MessageResponse(message=result.message)
