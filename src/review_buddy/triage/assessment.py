"""LLM-backed risk assessment with a conservative fallback."""

import logging
from dataclasses import dataclass

from review_buddy.llm.base import BaseLLM, parse_json_object
from review_buddy.triage.models import (
    RiskAssessment,
    RiskDetails,
    RiskLevel,
    ReviewSnapshot,
    Sentiment,
)
from review_buddy.triage.prompts import build_risk_assessment_prompt

logger = logging.getLogger(__name__)

# Substituted when the model's answer can't be read
FALLBACK_ASSESSMENT = RiskAssessment(
    content_risk=RiskLevel.MEDIUM,
    reputational_risk=RiskLevel.MEDIUM,
    contextual_risk=RiskLevel.LOW,
    pii_detected=False,
    legal_risk_detected=False,
    sentiment=Sentiment.NEUTRAL,
    topics=[],
    details=RiskDetails(content_risk_factors=["Unable to parse risk assessment"]),
)


@dataclass(frozen=True)
class AssessmentOutcome:
    """A risk assessment plus whether it is the fallback."""

    assessment: RiskAssessment
    fallback_used: bool
    raw_response: str = ""


def parse_assessment(response_text: str | None) -> RiskAssessment | None:
    """Parse raw LLM output into a RiskAssessment.

    Returns None when the text is not a JSON object or any of the three
    risk levels is missing or unrecognized.
    """
    data = parse_json_object(response_text)
    if data is None:
        return None
    try:
        return RiskAssessment.from_dict(data)
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"Non-conforming risk assessment: {e}")
        return None


class RiskAssessor:
    """Ask the LLM for a risk report on one review."""

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def assess(self, review: ReviewSnapshot) -> AssessmentOutcome:
        """Assess a review.

        Errors raised by the LLM call itself propagate. Output that can't be
        parsed yields FALLBACK_ASSESSMENT with ``fallback_used`` set.
        """
        prompt = build_risk_assessment_prompt(
            review.review_text,
            review.rating,
            review.platform,
            review.reviewer_name,
        )
        raw_response = await self.llm.generate(prompt, json_mode=True)

        assessment = parse_assessment(raw_response)
        if assessment is None:
            logger.warning(
                f"Could not parse risk assessment for review {review.id}, using fallback"
            )
            logger.debug(f"Raw response: {raw_response}")
            return AssessmentOutcome(FALLBACK_ASSESSMENT, True, raw_response or "")

        return AssessmentOutcome(assessment, False, raw_response)
