"""Audit trail action types and their metadata payloads."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from review_buddy.db.models import AuditLog


class AuditAction(str, Enum):
    """Kinds of audited actions."""

    REVIEW_PROCESSED = "REVIEW_PROCESSED"
    REVIEW_UPDATED = "REVIEW_UPDATED"
    RESPONSE_PUBLISHED = "RESPONSE_PUBLISHED"
    REVIEWS_FETCHED = "REVIEWS_FETCHED"
    INVITE_SENT = "INVITE_SENT"
    SLACK_NOTIFICATION_SENT = "SLACK_NOTIFICATION_SENT"
    SLACK_NOTIFICATION_FAILED = "SLACK_NOTIFICATION_FAILED"
    WHATSAPP_NOTIFICATION_SENT = "WHATSAPP_NOTIFICATION_SENT"
    WHATSAPP_NOTIFICATION_FAILED = "WHATSAPP_NOTIFICATION_FAILED"


@dataclass(frozen=True)
class ReviewProcessedMetadata:
    fallback_used: bool
    automation_level: str

    def to_dict(self) -> dict[str, Any]:
        return {"fallbackUsed": self.fallback_used, "automationLevel": self.automation_level}


@dataclass(frozen=True)
class ReviewUpdatedMetadata:
    updates: list[str]
    human_notes: str | None = None
    human_action_taken: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "updates": self.updates,
            "humanNotes": self.human_notes,
            "humanActionTaken": self.human_action_taken,
        }


@dataclass(frozen=True)
class ResponsePublishedMetadata:
    external_id: str
    response_type: str
    send_email: bool
    platform: str = "kiyoh"

    def to_dict(self) -> dict[str, Any]:
        return {
            "externalId": self.external_id,
            "responseType": self.response_type,
            "sendEmail": self.send_email,
            "platform": self.platform,
        }


@dataclass(frozen=True)
class ReviewsFetchedMetadata:
    total_fetched: int
    new_reviews: int
    updated_reviews: int
    source: str = "kiyoh"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "totalFetched": self.total_fetched,
            "newReviews": self.new_reviews,
            "updatedReviews": self.updated_reviews,
        }


@dataclass(frozen=True)
class InviteSentMetadata:
    email: str
    first_name: str = ""
    last_name: str = ""
    delay: int = 0
    language: str = "en"

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "delay": self.delay,
            "language": self.language,
        }


@dataclass(frozen=True)
class SlackNotificationMetadata:
    channel: str | None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"channel": self.channel}
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class WhatsAppNotificationMetadata:
    message_id: str | None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"messageId": self.message_id}
        if self.error:
            data["error"] = self.error
        return data


AuditMetadata = (
    ReviewProcessedMetadata
    | ReviewUpdatedMetadata
    | ResponsePublishedMetadata
    | ReviewsFetchedMetadata
    | InviteSentMetadata
    | SlackNotificationMetadata
    | WhatsAppNotificationMetadata
)

# Metadata type each action carries
METADATA_TYPES: dict[AuditAction, type] = {
    AuditAction.REVIEW_PROCESSED: ReviewProcessedMetadata,
    AuditAction.REVIEW_UPDATED: ReviewUpdatedMetadata,
    AuditAction.RESPONSE_PUBLISHED: ResponsePublishedMetadata,
    AuditAction.REVIEWS_FETCHED: ReviewsFetchedMetadata,
    AuditAction.INVITE_SENT: InviteSentMetadata,
    AuditAction.SLACK_NOTIFICATION_SENT: SlackNotificationMetadata,
    AuditAction.SLACK_NOTIFICATION_FAILED: SlackNotificationMetadata,
    AuditAction.WHATSAPP_NOTIFICATION_SENT: WhatsAppNotificationMetadata,
    AuditAction.WHATSAPP_NOTIFICATION_FAILED: WhatsAppNotificationMetadata,
}


def build_audit_log(
    action: AuditAction,
    metadata: AuditMetadata | None = None,
    *,
    review_id: str | None = None,
    human_user_id: str | None = None,
    risk_assessment: dict[str, Any] | None = None,
    **fields: Any,
) -> AuditLog:
    """Build an AuditLog row, serializing structured payloads.

    Extra keyword arguments map directly onto AuditLog columns
    (decision, confidence_score, previous_decision, ...).

    Raises:
        TypeError: If the metadata type doesn't belong to the action
    """
    if metadata is not None and not isinstance(metadata, METADATA_TYPES[action]):
        raise TypeError(
            f"{action.value} expects {METADATA_TYPES[action].__name__}, "
            f"got {type(metadata).__name__}"
        )

    return AuditLog(
        action_type=action.value,
        review_id=review_id,
        human_user_id=human_user_id,
        risk_assessment=json.dumps(risk_assessment) if risk_assessment is not None else None,
        metadata_json=json.dumps(metadata.to_dict()) if metadata is not None else None,
        **fields,
    )
