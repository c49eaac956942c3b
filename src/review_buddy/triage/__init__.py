"""Review triage: risk assessment, decision policy and the processing pipeline."""

from review_buddy.triage.models import (
    AutomationLevel,
    BrandTone,
    Decision,
    DecisionResult,
    ResponseStatus,
    ReviewStatus,
    RiskAssessment,
    RiskDetails,
    RiskLevel,
    Sentiment,
    StepStatus,
)
from review_buddy.triage.policy import decide
from review_buddy.triage.prompts import build_response_prompt, build_risk_assessment_prompt

__all__ = [
    "AutomationLevel",
    "BrandTone",
    "Decision",
    "DecisionResult",
    "ResponseStatus",
    "ReviewStatus",
    "RiskAssessment",
    "RiskDetails",
    "RiskLevel",
    "Sentiment",
    "StepStatus",
    "decide",
    "build_response_prompt",
    "build_risk_assessment_prompt",
]
