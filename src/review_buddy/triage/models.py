"""Data models and enums for review triage."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RiskLevel(str, Enum):
    """Severity bucket for one risk category."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel":
        """Parse a risk level case-insensitively.

        Raises:
            ValueError: If the value is not a recognized level
        """
        if isinstance(value, RiskLevel):
            return value
        if isinstance(value, str):
            for level in cls:
                if level.value.lower() == value.strip().lower():
                    return level
        raise ValueError(f"Unrecognized risk level: {value!r}")


class Sentiment(str, Enum):
    """Overall sentiment of a review."""

    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"

    @classmethod
    def parse(cls, value: Any) -> "Sentiment":
        """Parse a sentiment case-insensitively, defaulting to Neutral."""
        if isinstance(value, Sentiment):
            return value
        if isinstance(value, str):
            for sentiment in cls:
                if sentiment.value.lower() == value.strip().lower():
                    return sentiment
        return cls.NEUTRAL


class Decision(str, Enum):
    """The AI's disposition recommendation for a review."""

    AUTO_HANDLE = "AUTO_HANDLE"
    HOLD_FOR_APPROVAL = "HOLD_FOR_APPROVAL"
    ESCALATE_TO_HUMAN = "ESCALATE_TO_HUMAN"


class AutomationLevel(str, Enum):
    """How much autonomy the brand grants the AI."""

    AUTO = "AUTO"
    SEMI_AUTO = "SEMI_AUTO"
    MANUAL = "MANUAL"


class BrandTone(str, Enum):
    """Register used for drafted replies."""

    PROFESSIONAL = "Professional"
    EMPATHETIC = "Empathetic"
    FRIENDLY = "Friendly"
    NEUTRAL = "Neutral"


class ReviewStatus(str, Enum):
    """Workflow state of a review, independent of the AI decision."""

    NEW = "new"
    PROCESSING = "processing"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    RESPONDED = "responded"
    ESCALATED = "escalated"
    ARCHIVED = "archived"


class ResponseStatus(str, Enum):
    """Lifecycle of the drafted reply."""

    PENDING = "pending"
    GENERATED = "generated"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"


class StepStatus(str, Enum):
    """Status reported for one processing step."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


# Workflow status a review lands in after processing
DECISION_STATUS: dict[Decision, ReviewStatus] = {
    Decision.AUTO_HANDLE: ReviewStatus.APPROVED,
    Decision.HOLD_FOR_APPROVAL: ReviewStatus.PENDING_APPROVAL,
    Decision.ESCALATE_TO_HUMAN: ReviewStatus.ESCALATED,
}

# Only auto-handled reviews get a reply that is ready to publish
DECISION_RESPONSE_STATUS: dict[Decision, ResponseStatus] = {
    Decision.AUTO_HANDLE: ResponseStatus.GENERATED,
    Decision.HOLD_FOR_APPROVAL: ResponseStatus.PENDING,
    Decision.ESCALATE_TO_HUMAN: ResponseStatus.PENDING,
}


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


class RiskDetails(BaseModel):
    """Free-text factors behind each risk rating."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    content_risk_factors: list[str] = Field(default_factory=list)
    reputational_risk_factors: list[str] = Field(default_factory=list)
    contextual_risk_factors: list[str] = Field(default_factory=list)
    pii_found: list[str] = Field(default_factory=list)
    legal_flags: list[str] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "RiskDetails":
        """Create from a camelCase dictionary, dropping malformed entries."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            content_risk_factors=_string_list(data.get("contentRiskFactors")),
            reputational_risk_factors=_string_list(data.get("reputationalRiskFactors")),
            contextual_risk_factors=_string_list(data.get("contextualRiskFactors")),
            pii_found=_string_list(data.get("piiFound")),
            legal_flags=_string_list(data.get("legalFlags")),
        )


def _confidence(value: Any) -> int | None:
    """Model-reported confidence; non-numeric or non-finite values are dropped."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(value)


class RiskAssessment(BaseModel):
    """Structured risk report for one review.

    Field names are snake_case in Python and camelCase on the wire, which is
    also the shape persisted in ``risk_assessment_json`` and audit entries.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    content_risk: RiskLevel
    reputational_risk: RiskLevel
    contextual_risk: RiskLevel
    pii_detected: bool = False
    legal_risk_detected: bool = False
    sentiment: Sentiment = Sentiment.NEUTRAL
    topics: list[str] = Field(default_factory=list)
    details: RiskDetails = Field(default_factory=RiskDetails)
    confidence: int | None = None

    @property
    def risk_levels(self) -> tuple[RiskLevel, RiskLevel, RiskLevel]:
        """Content, reputational and contextual risk, in that order."""
        return (self.content_risk, self.reputational_risk, self.contextual_risk)

    @classmethod
    def from_dict(cls, data: dict) -> "RiskAssessment":
        """Create from an LLM JSON object.

        Raises:
            ValueError: If any of the three risk levels is missing or unrecognized
        """
        return cls(
            content_risk=RiskLevel.parse(data.get("contentRisk")),
            reputational_risk=RiskLevel.parse(data.get("reputationalRisk")),
            contextual_risk=RiskLevel.parse(data.get("contextualRisk")),
            pii_detected=data.get("piiDetected") is True,
            legal_risk_detected=data.get("legalRiskDetected") is True,
            sentiment=Sentiment.parse(data.get("sentiment")),
            topics=_string_list(data.get("topics")),
            details=RiskDetails.from_dict(data.get("details")),
            confidence=_confidence(data.get("confidence")),
        )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape used at the persistence boundary."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class ReviewSnapshot:
    """Fields of a review that processing reads, captured before the run."""

    id: str
    review_text: str
    rating: float
    platform: str
    reviewer_name: str
    status: ReviewStatus | str
    external_id: str | None = None

    @classmethod
    def from_record(cls, review: Any) -> "ReviewSnapshot":
        return cls(
            id=review.id,
            review_text=review.review_text or "",
            rating=review.rating or 0,
            platform=review.platform or "kiyoh",
            reviewer_name=review.reviewer_name or "Anonymous",
            status=review.status,
            external_id=review.external_id,
        )


@dataclass(frozen=True)
class DecisionResult:
    """Outcome of the decision policy."""

    decision: Decision
    confidence_score: int
    rationale: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.value,
            "confidenceScore": self.confidence_score,
            "rationale": self.rationale,
        }
