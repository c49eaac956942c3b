"""API request and response schemas.

JSON bodies use camelCase; Python attributes stay snake_case.
"""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from review_buddy.db.models import AuditLog, Review
from review_buddy.triage.models import Decision, ResponseStatus, ReviewStatus


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReviewOut(CamelModel):
    """A review with its triage results."""

    id: str
    external_id: str | None = None
    platform: str
    review_text: str
    one_liner: str | None = None
    rating: float
    reviewer_name: str
    reviewer_city: str | None = None
    review_timestamp: datetime | None = None
    content_risk: str | None = None
    reputational_risk: str | None = None
    contextual_risk: str | None = None
    pii_detected: bool = False
    legal_risk_detected: bool = False
    risk_assessment: dict[str, Any] | None = None
    sentiment: str | None = None
    topics: list[str] = Field(default_factory=list)
    decision: str | None = None
    confidence_score: int | None = None
    decision_rationale: str | None = None
    generated_response: str | None = None
    response_status: str
    response_published_at: datetime | None = None
    status: str
    human_assigned_id: str | None = None
    human_notes: str | None = None
    human_action_taken: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, review: Review) -> "ReviewOut":
        return cls(
            id=review.id,
            external_id=review.external_id,
            platform=review.platform,
            review_text=review.review_text,
            one_liner=review.one_liner,
            rating=review.rating,
            reviewer_name=review.reviewer_name,
            reviewer_city=review.reviewer_city,
            review_timestamp=review.review_timestamp,
            content_risk=review.content_risk,
            reputational_risk=review.reputational_risk,
            contextual_risk=review.contextual_risk,
            pii_detected=bool(review.pii_detected),
            legal_risk_detected=bool(review.legal_risk_detected),
            risk_assessment=review.risk_assessment,
            sentiment=review.sentiment,
            topics=review.topic_list,
            decision=review.decision,
            confidence_score=review.confidence_score,
            decision_rationale=review.decision_rationale,
            generated_response=review.generated_response,
            response_status=review.response_status,
            response_published_at=review.response_published_at,
            status=review.status,
            human_assigned_id=review.human_assigned_id,
            human_notes=review.human_notes,
            human_action_taken=review.human_action_taken,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )


class AuditLogOut(CamelModel):
    """One audit trail entry."""

    id: int
    review_id: str | None = None
    action_type: str
    human_user_id: str | None = None
    risk_assessment: dict[str, Any] | None = None
    decision: str | None = None
    decision_rationale: str | None = None
    confidence_score: int | None = None
    generated_response: str | None = None
    human_action: str | None = None
    override_reason: str | None = None
    previous_decision: str | None = None
    new_decision: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, entry: AuditLog) -> "AuditLogOut":
        return cls(
            id=entry.id,
            review_id=entry.review_id,
            action_type=entry.action_type,
            human_user_id=entry.human_user_id,
            risk_assessment=json.loads(entry.risk_assessment) if entry.risk_assessment else None,
            decision=entry.decision,
            decision_rationale=entry.decision_rationale,
            confidence_score=entry.confidence_score,
            generated_response=entry.generated_response,
            human_action=entry.human_action,
            override_reason=entry.override_reason,
            previous_decision=entry.previous_decision,
            new_decision=entry.new_decision,
            metadata=entry.metadata_dict,
            created_at=entry.created_at,
        )


class ReviewListResponse(CamelModel):
    reviews: list[ReviewOut]
    total: int
    page: int
    total_pages: int


class ReviewDetailResponse(ReviewOut):
    audit_logs: list[AuditLogOut] = Field(default_factory=list)


class ReviewUpdateRequest(CamelModel):
    """Changes a person makes to a review. Only fields that are sent are applied."""

    status: ReviewStatus | None = None
    decision: Decision | None = None
    human_notes: str | None = None
    human_action_taken: str | None = None
    generated_response: str | None = None
    response_status: ResponseStatus | None = None
    acting_user_id: str | None = None

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True, exclude={"acting_user_id"})
        return {
            name: getattr(value, "value", value) for name, value in data.items()
        }


class PublishRequest(CamelModel):
    response_type: Literal["PUBLIC", "PRIVATE"] = "PUBLIC"
    send_email: bool = False
    acting_user_id: str | None = None


class SlackAlertRequest(CamelModel):
    review_id: str | None = None
    custom_message: str | None = None
    acting_user_id: str | None = None


class FetchReviewsRequest(CamelModel):
    date_since: str | None = Field(default=None, description="ISO date, e.g. 2024-01-31")
    limit: int = Field(default=50, ge=1, le=500)


class ImportCounts(BaseModel):
    new: int
    updated: int


class FetchReviewsResponse(CamelModel):
    success: bool = True
    fetched: int
    imported: ImportCounts
    new_review_ids: list[str]
    location_name: str
    average_rating: float
    total_reviews: int


class InviteRequest(CamelModel):
    email: str = Field(..., min_length=3)
    first_name: str = ""
    last_name: str = ""
    delay: int = Field(default=0, ge=0)
    language: str = "en"
    ref_code: str = ""
    acting_user_id: str | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AuditLogListResponse(CamelModel):
    logs: list[AuditLogOut]
    total: int
    page: int
    total_pages: int
