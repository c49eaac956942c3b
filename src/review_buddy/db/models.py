"""SQLAlchemy models for reviews, audit trail, health rollups and brand settings.

JSON payloads (topics, risk assessments, audit metadata) are stored as Text
and serialized at the edges.
"""

import json
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class Review(Base):
    """A customer review imported from the review platform."""

    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    external_id: Mapped[str | None] = mapped_column(
        String(128), unique=True, index=True, nullable=True
    )
    platform: Mapped[str] = mapped_column(String(32), default="kiyoh")

    # Content
    review_text: Mapped[str] = mapped_column(Text, default="")
    one_liner: Mapped[str | None] = mapped_column(String(512), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0)  # 0-10 scale
    reviewer_name: Mapped[str] = mapped_column(String(256), default="Anonymous")
    reviewer_city: Mapped[str | None] = mapped_column(String(256), nullable=True)
    review_timestamp: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Risk assessment (null until processed)
    content_risk: Mapped[str | None] = mapped_column(String(16), nullable=True)
    reputational_risk: Mapped[str | None] = mapped_column(String(16), nullable=True)
    contextual_risk: Mapped[str | None] = mapped_column(String(16), nullable=True)
    pii_detected: Mapped[bool] = mapped_column(Boolean, default=False)
    legal_risk_detected: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_assessment_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sentiment: Mapped[str | None] = mapped_column(String(16), nullable=True)
    topics: Mapped[str] = mapped_column(Text, default="[]")  # JSON list

    # Decision
    decision: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decision_rationale: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Response
    generated_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_status: Mapped[str] = mapped_column(String(16), default="pending")
    # Statuses: pending, generated, approved, published, rejected
    response_published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(32), default="new", index=True)
    # Statuses: new, processing, pending_approval, approved, responded, escalated, archived

    # Human handling
    human_assigned_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    human_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    human_action_taken: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    @property
    def topic_list(self) -> list[str]:
        try:
            topics = json.loads(self.topics or "[]")
        except json.JSONDecodeError:
            return []
        return topics if isinstance(topics, list) else []

    @property
    def risk_assessment(self) -> dict[str, Any] | None:
        if not self.risk_assessment_json:
            return None
        return json.loads(self.risk_assessment_json)

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, rating={self.rating}, status={self.status})>"


class AuditLog(Base):
    """Append-only record of an action taken by the system or a person."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("reviews.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action_type: Mapped[str] = mapped_column(String(64), index=True)
    human_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Decision snapshot
    risk_assessment: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON
    decision: Mapped[str | None] = mapped_column(String(32), nullable=True)
    decision_rationale: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    generated_response: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Human intervention
    human_action: Mapped[str | None] = mapped_column(String(64), nullable=True)
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    previous_decision: Mapped[str | None] = mapped_column(String(32), nullable=True)
    new_decision: Mapped[str | None] = mapped_column(String(32), nullable=True)

    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)

    @property
    def metadata_dict(self) -> dict[str, Any]:
        if not self.metadata_json:
            return {}
        return json.loads(self.metadata_json)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action_type}, review_id={self.review_id})>"


class SystemHealth(Base):
    """Running per-day rollup of processing outcomes."""

    __tablename__ = "system_health"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    auto_handled_count: Mapped[int] = mapped_column(Integer, default=0)
    hold_for_approval_count: Mapped[int] = mapped_column(Integer, default=0)
    escalated_count: Mapped[int] = mapped_column(Integer, default=0)
    escalation_rate: Mapped[float] = mapped_column(Float, default=0.0)  # Percent
    override_frequency: Mapped[float] = mapped_column(Float, default=0.0)  # Percent
    avg_confidence_score: Mapped[float] = mapped_column(Float, default=0.0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    alert_triggered: Mapped[bool] = mapped_column(Boolean, default=False)
    alert_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SystemHealth(day={self.timestamp:%Y-%m-%d}, total={self.total_reviews}, "
            f"escalation_rate={self.escalation_rate:.1f})>"
        )


class BrandConfig(Base):
    """Brand settings and channel credentials. One record is active at a time."""

    __tablename__ = "brand_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_name: Mapped[str] = mapped_column(String(256), default="My Company")
    brand_tone: Mapped[str] = mapped_column(String(32), default="Professional")
    automation_level: Mapped[str] = mapped_column(String(16), default="SEMI_AUTO")
    escalation_thresholds: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON

    # Review platform
    kiyoh_api_key: Mapped[str | None] = mapped_column(String(256), nullable=True)
    kiyoh_location_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    kiyoh_tenant_id: Mapped[str] = mapped_column(String(16), default="98")

    # LLM
    gemini_api_key: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # Slack
    slack_webhook_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    slack_channel_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    slack_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # WhatsApp via Twilio
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    twilio_account_sid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    twilio_auth_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    twilio_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    whatsapp_admin_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    def __repr__(self) -> str:
        return f"<BrandConfig(id={self.id}, company={self.company_name}, active={self.is_active})>"
