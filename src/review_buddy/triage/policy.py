"""Deterministic decision policy mapping a risk assessment to a disposition.

Rules are evaluated in order and the first match wins:

1. Any High risk or legal risk escalates (95).
2. PII holds for approval (90).
3. All Low with AUTO automation is auto-handled (85).
4. Any Medium risk holds for approval (75).
5. MANUAL automation holds for approval (90).
6. SEMI_AUTO auto-handles all-Low positive reviews (90) and holds the rest (85).
7. Anything else holds for approval (80) with an empty rationale.
"""

from review_buddy.triage.models import (
    AutomationLevel,
    Decision,
    DecisionResult,
    RiskAssessment,
    RiskLevel,
    Sentiment,
)

CATEGORY_NAMES = ("content", "reputational", "contextual")


def _categories_at(assessment: RiskAssessment, level: RiskLevel) -> list[str]:
    return [
        name
        for name, risk in zip(CATEGORY_NAMES, assessment.risk_levels)
        if risk == level
    ]


def decide(
    assessment: RiskAssessment, automation_level: AutomationLevel | str
) -> DecisionResult:
    """Choose a disposition for a review.

    Pure and total: unknown automation levels fall through to the final rule.
    """
    high = _categories_at(assessment, RiskLevel.HIGH)
    if high or assessment.legal_risk_detected:
        reasons = [f"high {name} risk" for name in high]
        if assessment.legal_risk_detected:
            reasons.append("legal risk detected")
        return DecisionResult(
            Decision.ESCALATE_TO_HUMAN,
            95,
            f"Escalation required due to: {', '.join(reasons)}",
        )

    if assessment.pii_detected:
        return DecisionResult(
            Decision.HOLD_FOR_APPROVAL,
            90,
            "PII detected - human review required before responding",
        )

    all_low = len(_categories_at(assessment, RiskLevel.LOW)) == len(CATEGORY_NAMES)

    if all_low and automation_level == AutomationLevel.AUTO:
        return DecisionResult(
            Decision.AUTO_HANDLE,
            85,
            "All risk levels are low and automation is enabled",
        )

    medium = _categories_at(assessment, RiskLevel.MEDIUM)
    if medium:
        return DecisionResult(
            Decision.HOLD_FOR_APPROVAL,
            75,
            f"Medium risk detected in: {', '.join(medium)} - human approval recommended",
        )

    if automation_level == AutomationLevel.MANUAL:
        return DecisionResult(
            Decision.HOLD_FOR_APPROVAL,
            90,
            "Manual mode enabled - all reviews require human approval",
        )

    if automation_level == AutomationLevel.SEMI_AUTO:
        if all_low and assessment.sentiment == Sentiment.POSITIVE:
            return DecisionResult(
                Decision.AUTO_HANDLE,
                90,
                "Semi-automatic mode - perfect positive review handled automatically",
            )
        return DecisionResult(
            Decision.HOLD_FOR_APPROVAL,
            85,
            "Semi-automatic mode - review queued for quick check",
        )

    return DecisionResult(Decision.HOLD_FOR_APPROVAL, 80, "")
