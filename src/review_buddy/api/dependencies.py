"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.brand import BrandSettings, get_active_brand_config
from review_buddy.db.database import get_session
from review_buddy.notifications.slack import SlackNotifier
from review_buddy.triage.pipeline import BrandConfigNotFoundError, ReviewProcessor

# One processor per app so detached runs are tracked in one place
_processor: ReviewProcessor | None = None


def get_processor() -> ReviewProcessor:
    """Get or create the review processor."""
    global _processor
    if _processor is None:
        _processor = ReviewProcessor()
    return _processor


async def get_brand_settings(session: AsyncSession = Depends(get_session)) -> BrandSettings:
    """Resolve the active brand configuration for this request."""
    config = await get_active_brand_config(session)
    if config is None:
        raise BrandConfigNotFoundError("Brand configuration not found")
    return BrandSettings.from_record(config)


def get_slack_notifier() -> SlackNotifier:
    return SlackNotifier()
