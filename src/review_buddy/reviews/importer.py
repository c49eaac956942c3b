"""Import reviews from Kiyoh into the local database."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.audit import AuditAction, ReviewsFetchedMetadata, build_audit_log
from review_buddy.brand import BrandSettings
from review_buddy.db.models import Review
from review_buddy.kiyoh.client import KiyohClient
from review_buddy.triage.models import ReviewStatus

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Summary of one import."""

    fetched: int = 0
    new: int = 0
    updated: int = 0
    new_review_ids: list[str] = field(default_factory=list)
    location_name: str = ""
    average_rating: float = 0.0
    total_reviews: int = 0


async def import_reviews(
    session: AsyncSession,
    brand: BrandSettings,
    date_since: str | None = None,
    limit: int = 50,
    client: KiyohClient | None = None,
) -> ImportResult:
    """Fetch the newest reviews and upsert them by external id.

    New reviews land with status ``new``; existing ones get their rating and
    text refreshed but keep their triage results.

    Raises:
        KiyohNotConfiguredError: If the brand has no Kiyoh credentials
        KiyohAPIError: If Kiyoh rejects the request
    """
    client = client or KiyohClient.from_brand(brand)
    page = await client.fetch_reviews(
        date_since=date_since,
        limit=limit,
        order_by="CREATE_DATE",
        sort_order="DESC",
    )

    result = ImportResult(
        fetched=len(page.reviews),
        location_name=page.location_name,
        average_rating=page.average_rating,
        total_reviews=page.number_reviews,
    )

    for item in page.reviews:
        existing = (
            await session.execute(select(Review).where(Review.external_id == item.review_id))
        ).scalar_one_or_none()

        if existing is not None:
            existing.rating = item.rating
            existing.review_text = item.text
            existing.one_liner = item.one_liner or None
            result.updated += 1
            continue

        review = Review(
            external_id=item.review_id,
            platform="kiyoh",
            review_text=item.text,
            one_liner=item.one_liner or None,
            rating=item.rating,
            reviewer_name=item.author,
            reviewer_city=item.city,
            review_timestamp=item.created_at,
            status=ReviewStatus.NEW.value,
        )
        session.add(review)
        await session.flush()
        result.new += 1
        result.new_review_ids.append(review.id)

    session.add(
        build_audit_log(
            AuditAction.REVIEWS_FETCHED,
            ReviewsFetchedMetadata(
                total_fetched=result.fetched,
                new_reviews=result.new,
                updated_reviews=result.updated,
            ),
        )
    )
    await session.commit()

    logger.info(
        f"Imported Kiyoh reviews: {result.fetched} fetched, "
        f"{result.new} new, {result.updated} updated"
    )
    return result
