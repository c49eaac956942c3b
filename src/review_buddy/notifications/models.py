"""Alert payload and delivery result shared by notification channels."""

from dataclasses import dataclass
from enum import Enum

from review_buddy.config import settings
from review_buddy.triage.models import RiskAssessment, RiskLevel

REVIEW_EXCERPT_LENGTH = 200
DEFAULT_ACTION = "Manual review required - check dashboard."


class NotificationStatus(str, Enum):
    """Outcome of one notification attempt."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationResult:
    """What happened when a channel was asked to deliver an alert."""

    status: NotificationStatus
    message: str
    message_id: str | None = None

    @classmethod
    def sent(cls, message: str, message_id: str | None = None) -> "NotificationResult":
        return cls(NotificationStatus.SENT, message, message_id)

    @classmethod
    def skipped(cls, message: str) -> "NotificationResult":
        return cls(NotificationStatus.SKIPPED, message)

    @classmethod
    def failed(cls, message: str) -> "NotificationResult":
        return cls(NotificationStatus.FAILED, message)


def review_url(review_id: str) -> str | None:
    """Dashboard deep link for a review, if a public base URL is configured."""
    if not settings.APP_BASE_URL:
        return None
    return f"{settings.APP_BASE_URL.rstrip('/')}/dashboard/reviews/{review_id}"


def highest_risk_label(assessment: RiskAssessment) -> str:
    """High if any category is High, else Medium if any is Medium, else Low."""
    levels = assessment.risk_levels
    if RiskLevel.HIGH in levels:
        return RiskLevel.HIGH.value
    if RiskLevel.MEDIUM in levels:
        return RiskLevel.MEDIUM.value
    return RiskLevel.LOW.value


def truncate_review(text: str, limit: int = REVIEW_EXCERPT_LENGTH) -> str:
    """Cut review text to ``limit`` characters, marking the cut with an ellipsis."""
    text = text or ""
    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


def format_rating(rating: float | int | None) -> str:
    if rating is None:
        return "0"
    if isinstance(rating, float) and rating.is_integer():
        return str(int(rating))
    return str(rating)


@dataclass(frozen=True)
class AlertMessage:
    """Denormalized alert about one review, ready for any channel."""

    reviewer_name: str
    rating: float
    review_excerpt: str
    risk_level: str
    confidence_score: int
    reason: str
    action_required: str = DEFAULT_ACTION
    review_url: str | None = None

    @classmethod
    def build(
        cls,
        reviewer_name: str | None,
        rating: float | None,
        review_text: str | None,
        assessment: RiskAssessment,
        confidence_score: int,
        reason: str | None,
        review_url: str | None = None,
        action_required: str = DEFAULT_ACTION,
    ) -> "AlertMessage":
        return cls(
            reviewer_name=reviewer_name or "Anonymous",
            rating=rating or 0,
            review_excerpt=truncate_review(review_text or ""),
            risk_level=highest_risk_label(assessment),
            confidence_score=confidence_score,
            reason=reason or "High risk or complex situation detected",
            action_required=action_required,
            review_url=review_url,
        )

    @property
    def summary(self) -> str:
        """One-line fallback text for clients that can't render rich content."""
        return (
            f"ReviewBuddy Alert: {self.reviewer_name} left a "
            f"{format_rating(self.rating)}/10 review that needs attention."
        )
