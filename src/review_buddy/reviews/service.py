"""Review queries and human actions: updates, publishing, invites, stats."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.audit import (
    AuditAction,
    InviteSentMetadata,
    ResponsePublishedMetadata,
    ReviewUpdatedMetadata,
    SlackNotificationMetadata,
    build_audit_log,
)
from review_buddy.brand import BrandSettings
from review_buddy.db.models import AuditLog, Review, SystemHealth
from review_buddy.kiyoh.client import KiyohClient
from review_buddy.notifications.models import (
    AlertMessage,
    NotificationResult,
    NotificationStatus,
    review_url,
)
from review_buddy.notifications.slack import SlackNotifier
from review_buddy.triage.models import (
    Decision,
    ResponseStatus,
    ReviewStatus,
    RiskAssessment,
    RiskLevel,
)
from review_buddy.triage.pipeline import ReviewNotFoundError

logger = logging.getLogger(__name__)

RECENT_AUDIT_LIMIT = 20

# Recommended action on a manually sent Slack alert
ESCALATED_ACTION = "Immediate review and response needed"
DRAFT_ACTION = "Review AI-generated response before publishing"

# Review fields a person may change, with the enum their value must belong to
EDITABLE_FIELDS: dict[str, type | None] = {
    "status": ReviewStatus,
    "decision": Decision,
    "response_status": ResponseStatus,
    "generated_response": None,
    "human_notes": None,
    "human_action_taken": None,
}


class PublishError(Exception):
    """A reply can't be published for this review."""

    pass


@dataclass
class ReviewFilters:
    status: str | None = None
    decision: str | None = None
    platform: str | None = None


@dataclass
class ReviewPage:
    reviews: list[Review]
    total: int
    page: int
    total_pages: int


@dataclass
class ReviewDetail:
    review: Review
    audit_logs: list[AuditLog] = field(default_factory=list)


@dataclass
class AuditLogPage:
    logs: list[AuditLog]
    total: int
    page: int
    total_pages: int


def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def list_reviews(
    session: AsyncSession,
    filters: ReviewFilters | None = None,
    page: int = 1,
    limit: int = 20,
) -> ReviewPage:
    """List reviews newest first."""
    filters = filters or ReviewFilters()
    page = max(page, 1)

    conditions = []
    if filters.status:
        conditions.append(Review.status == filters.status)
    if filters.decision:
        conditions.append(Review.decision == filters.decision)
    if filters.platform:
        conditions.append(Review.platform == filters.platform)

    total = (
        await session.execute(select(func.count(Review.id)).where(*conditions))
    ).scalar_one()
    result = await session.execute(
        select(Review)
        .where(*conditions)
        .order_by(Review.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ReviewPage(
        reviews=list(result.scalars().all()),
        total=total,
        page=page,
        total_pages=_total_pages(total, limit),
    )


async def _get_or_raise(session: AsyncSession, review_id: str) -> Review:
    review = await session.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError(f"Review not found: {review_id}")
    return review


async def get_review(session: AsyncSession, review_id: str) -> ReviewDetail:
    """Get a review with its most recent audit entries.

    Raises:
        ReviewNotFoundError: If the review does not exist
    """
    review = await _get_or_raise(session, review_id)
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.review_id == review_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(RECENT_AUDIT_LIMIT)
    )
    return ReviewDetail(review=review, audit_logs=list(result.scalars().all()))


async def update_review(
    session: AsyncSession,
    review_id: str,
    changes: dict[str, Any],
    acting_user_id: str | None = None,
) -> Review:
    """Apply a person's changes to a review and record them.

    Raises:
        ReviewNotFoundError: If the review does not exist
        ValueError: If a field is not editable or a value is not allowed
    """
    review = await _get_or_raise(session, review_id)

    updates: dict[str, Any] = {}
    for name, value in changes.items():
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{name}' can't be edited")
        enum_cls = EDITABLE_FIELDS[name]
        if enum_cls is not None and value is not None:
            value = enum_cls(value).value
        updates[name] = value

    if updates.get("status", review.status) == ReviewStatus.RESPONDED.value:
        if not updates.get("generated_response", review.generated_response):
            raise ValueError("A responded review needs a generated response")
        if not review.external_id:
            raise ValueError("A responded review needs an external review ID")

    previous_decision = review.decision
    for name, value in updates.items():
        setattr(review, name, value)

    session.add(
        build_audit_log(
            AuditAction.REVIEW_UPDATED,
            ReviewUpdatedMetadata(
                updates=list(updates),
                human_notes=updates.get("human_notes"),
                human_action_taken=updates.get("human_action_taken"),
            ),
            review_id=review.id,
            human_user_id=acting_user_id,
            previous_decision=previous_decision,
            new_decision=review.decision,
        )
    )
    await session.commit()
    logger.info(f"Review {review_id} updated: {', '.join(updates) or 'no changes'}")
    return review


async def publish_response(
    session: AsyncSession,
    review_id: str,
    brand: BrandSettings,
    response_type: str = "PUBLIC",
    send_email: bool = False,
    acting_user_id: str | None = None,
    client: KiyohClient | None = None,
) -> Review:
    """Publish the drafted reply to Kiyoh and mark the review responded.

    Raises:
        ReviewNotFoundError: If the review does not exist
        PublishError: If there is no reply or no external review id
        KiyohNotConfiguredError: If the brand has no Kiyoh credentials
        KiyohAPIError: If Kiyoh rejects the reply
    """
    review = await _get_or_raise(session, review_id)

    if not review.generated_response:
        raise PublishError("No response to publish")
    if not review.external_id:
        raise PublishError("No external review ID - cannot publish to platform")

    client = client or KiyohClient.from_brand(brand)
    await client.post_response(
        review.external_id,
        review.generated_response,
        response_type=response_type,
        send_email=send_email,
    )

    review.response_status = ResponseStatus.PUBLISHED.value
    review.response_published_at = datetime.now()
    review.status = ReviewStatus.RESPONDED.value

    session.add(
        build_audit_log(
            AuditAction.RESPONSE_PUBLISHED,
            ResponsePublishedMetadata(
                external_id=review.external_id,
                response_type=response_type,
                send_email=send_email,
            ),
            review_id=review.id,
            human_user_id=acting_user_id,
            generated_response=review.generated_response,
        )
    )
    await session.commit()
    logger.info(f"Published response for review {review_id} to Kiyoh")
    return review


async def send_invite(
    session: AsyncSession,
    brand: BrandSettings,
    email: str,
    first_name: str = "",
    last_name: str = "",
    delay: int = 0,
    language: str = "en",
    ref_code: str = "",
    acting_user_id: str | None = None,
    client: KiyohClient | None = None,
) -> None:
    """Send a review invite through Kiyoh and record it.

    Raises:
        ValueError: If no email is given
        KiyohNotConfiguredError: If the brand has no Kiyoh credentials
        KiyohAPIError: If Kiyoh rejects the invite
    """
    if not email:
        raise ValueError("Email is required")

    client = client or KiyohClient.from_brand(brand)
    await client.send_invite(
        email,
        first_name=first_name,
        last_name=last_name,
        delay=delay,
        language=language,
        ref_code=ref_code,
    )

    session.add(
        build_audit_log(
            AuditAction.INVITE_SENT,
            InviteSentMetadata(
                email=email,
                first_name=first_name,
                last_name=last_name,
                delay=delay,
                language=language,
            ),
            human_user_id=acting_user_id,
        )
    )
    await session.commit()


def build_review_alert(review: Review) -> AlertMessage:
    """Alert for a stored review, using whatever the last processing run recorded."""
    assessment = RiskAssessment(
        content_risk=RiskLevel(review.content_risk or RiskLevel.LOW.value),
        reputational_risk=RiskLevel(review.reputational_risk or RiskLevel.LOW.value),
        contextual_risk=RiskLevel(review.contextual_risk or RiskLevel.LOW.value),
        legal_risk_detected=bool(review.legal_risk_detected),
    )
    if review.decision == Decision.ESCALATE_TO_HUMAN.value:
        action = ESCALATED_ACTION
    else:
        action = DRAFT_ACTION
    return AlertMessage.build(
        reviewer_name=review.reviewer_name,
        rating=review.rating,
        review_text=review.review_text,
        assessment=assessment,
        confidence_score=review.confidence_score or 0,
        reason=review.decision_rationale or "Complex situation requiring human judgment",
        review_url=review_url(review.id),
        action_required=action,
    )


async def send_slack_alert(
    session: AsyncSession,
    review_id: str,
    brand: BrandSettings,
    acting_user_id: str | None = None,
    notifier: SlackNotifier | None = None,
) -> NotificationResult:
    """Send a review to the brand's Slack channel on request.

    Only a delivered alert is recorded in the audit log.

    Raises:
        ReviewNotFoundError: If the review does not exist
    """
    review = await _get_or_raise(session, review_id)
    notifier = notifier or SlackNotifier()

    result = await notifier.send(brand, build_review_alert(review))
    if result.status != NotificationStatus.SENT:
        logger.warning(f"Manual Slack alert for review {review_id} not sent: {result.message}")
        return result

    session.add(
        build_audit_log(
            AuditAction.SLACK_NOTIFICATION_SENT,
            SlackNotificationMetadata(channel=brand.slack_channel_name),
            review_id=review.id,
            human_user_id=acting_user_id,
        )
    )
    await session.commit()
    return result


async def list_audit_logs(
    session: AsyncSession,
    action_type: str | None = None,
    review_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> AuditLogPage:
    """List audit entries newest first."""
    page = max(page, 1)
    conditions = []
    if action_type:
        conditions.append(AuditLog.action_type == action_type)
    if review_id:
        conditions.append(AuditLog.review_id == review_id)

    total = (
        await session.execute(select(func.count(AuditLog.id)).where(*conditions))
    ).scalar_one()
    result = await session.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return AuditLogPage(
        logs=list(result.scalars().all()),
        total=total,
        page=page,
        total_pages=_total_pages(total, limit),
    )


async def _count(session: AsyncSession, *conditions) -> int:
    return (
        await session.execute(select(func.count(Review.id)).where(*conditions))
    ).scalar_one()


async def dashboard_stats(session: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Aggregate counts, queues, latest health and chart data for the dashboard."""
    now = now or datetime.now()

    overview = {
        "totalReviews": await _count(session),
        "autoHandled": await _count(session, Review.decision == Decision.AUTO_HANDLE.value),
        "holdForApproval": await _count(
            session, Review.decision == Decision.HOLD_FOR_APPROVAL.value
        ),
        "escalated": await _count(session, Review.decision == Decision.ESCALATE_TO_HUMAN.value),
        "responded": await _count(session, Review.status == ReviewStatus.RESPONDED.value),
    }

    avg_confidence = (
        await session.execute(
            select(func.avg(Review.confidence_score)).where(Review.confidence_score > 0)
        )
    ).scalar_one()
    avg_rating = (await session.execute(select(func.avg(Review.rating)))).scalar_one()
    overview["avgConfidenceScore"] = round(avg_confidence or 0)
    overview["avgRating"] = round(avg_rating or 0, 1)

    queues = {
        "newReviews": await _count(session, Review.status == ReviewStatus.NEW.value),
        "pendingApproval": await _count(
            session, Review.status == ReviewStatus.PENDING_APPROVAL.value
        ),
        "escalated": await _count(session, Review.status == ReviewStatus.ESCALATED.value),
    }

    health = (
        await session.execute(
            select(SystemHealth).order_by(SystemHealth.timestamp.desc()).limit(1)
        )
    ).scalar_one_or_none()

    decision_rows = await session.execute(
        select(Review.decision, func.count(Review.id))
        .where(Review.created_at >= now - timedelta(days=7))
        .group_by(Review.decision)
    )
    rating_rows = await session.execute(
        select(Review.rating, func.count(Review.id))
        .group_by(Review.rating)
        .order_by(Review.rating)
    )

    return {
        "overview": overview,
        "queues": queues,
        "systemHealth": {
            "escalationRate": health.escalation_rate if health else 0,
            "overrideFrequency": health.override_frequency if health else 0,
            "avgConfidenceScore": health.avg_confidence_score if health else 0,
            "alertTriggered": health.alert_triggered if health else False,
            "alertMessage": health.alert_message if health else None,
        },
        "charts": {
            "decisionDistribution": [
                {"name": decision or "Unknown", "value": count}
                for decision, count in decision_rows.all()
            ],
            "ratingDistribution": [
                {"rating": rating or 0, "count": count} for rating, count in rating_rows.all()
            ],
        },
    }
