"""Tests for the decision policy."""

import itertools

import pytest

from review_buddy.triage.models import (
    AutomationLevel,
    Decision,
    RiskAssessment,
    RiskLevel,
    Sentiment,
)
from review_buddy.triage.policy import decide

LOW, MEDIUM, HIGH = RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH


def make_assessment(
    content: RiskLevel = LOW,
    reputational: RiskLevel = LOW,
    contextual: RiskLevel = LOW,
    pii: bool = False,
    legal: bool = False,
    sentiment: Sentiment = Sentiment.POSITIVE,
) -> RiskAssessment:
    return RiskAssessment(
        content_risk=content,
        reputational_risk=reputational,
        contextual_risk=contextual,
        pii_detected=pii,
        legal_risk_detected=legal,
        sentiment=sentiment,
    )


ALL_LEVELS = [AutomationLevel.AUTO, AutomationLevel.SEMI_AUTO, AutomationLevel.MANUAL]


class TestEscalation:
    """High risk or legal risk always escalates."""

    @pytest.mark.parametrize("automation_level", ALL_LEVELS)
    @pytest.mark.parametrize(
        "levels",
        [
            (HIGH, LOW, LOW),
            (LOW, HIGH, LOW),
            (LOW, LOW, HIGH),
            (HIGH, MEDIUM, HIGH),
        ],
    )
    def test_any_high_escalates(self, levels, automation_level):
        result = decide(make_assessment(*levels, pii=True), automation_level)
        assert result.decision == Decision.ESCALATE_TO_HUMAN
        assert result.confidence_score == 95

    @pytest.mark.parametrize("automation_level", ALL_LEVELS)
    def test_legal_risk_escalates(self, automation_level):
        result = decide(make_assessment(legal=True), automation_level)
        assert result.decision == Decision.ESCALATE_TO_HUMAN
        assert result.confidence_score == 95
        assert result.rationale == "Escalation required due to: legal risk detected"

    def test_rationale_lists_every_trigger(self):
        assessment = make_assessment(HIGH, LOW, HIGH, legal=True)
        result = decide(assessment, AutomationLevel.AUTO)
        assert result.rationale == (
            "Escalation required due to: high content risk, high contextual risk, "
            "legal risk detected"
        )


class TestHoldForApproval:
    @pytest.mark.parametrize("automation_level", ALL_LEVELS)
    def test_pii_holds(self, automation_level):
        result = decide(make_assessment(MEDIUM, pii=True), automation_level)
        assert result.decision == Decision.HOLD_FOR_APPROVAL
        assert result.confidence_score == 90
        assert result.rationale == "PII detected - human review required before responding"

    def test_medium_names_exactly_the_medium_categories(self):
        result = decide(make_assessment(MEDIUM, LOW, MEDIUM), AutomationLevel.AUTO)
        assert result.decision == Decision.HOLD_FOR_APPROVAL
        assert result.confidence_score == 75
        assert result.rationale == (
            "Medium risk detected in: content, contextual - human approval recommended"
        )

    def test_manual_holds_all_low(self):
        result = decide(make_assessment(), AutomationLevel.MANUAL)
        assert result.decision == Decision.HOLD_FOR_APPROVAL
        assert result.confidence_score == 90
        assert result.rationale == "Manual mode enabled - all reviews require human approval"

    @pytest.mark.parametrize("sentiment", [Sentiment.NEUTRAL, Sentiment.NEGATIVE])
    def test_semi_auto_holds_non_positive(self, sentiment):
        result = decide(make_assessment(sentiment=sentiment), AutomationLevel.SEMI_AUTO)
        assert result.decision == Decision.HOLD_FOR_APPROVAL
        assert result.confidence_score == 85
        assert result.rationale == "Semi-automatic mode - review queued for quick check"

    def test_unknown_automation_level_falls_through(self):
        result = decide(make_assessment(), "TURBO")
        assert result.decision == Decision.HOLD_FOR_APPROVAL
        assert result.confidence_score == 80
        assert result.rationale == ""


class TestAutoHandle:
    def test_auto_all_low(self):
        result = decide(make_assessment(sentiment=Sentiment.NEGATIVE), AutomationLevel.AUTO)
        assert result.decision == Decision.AUTO_HANDLE
        assert result.confidence_score == 85
        assert result.rationale == "All risk levels are low and automation is enabled"

    def test_semi_auto_all_low_positive(self):
        result = decide(make_assessment(), AutomationLevel.SEMI_AUTO)
        assert result.decision == Decision.AUTO_HANDLE
        assert result.confidence_score == 90

    def test_automation_level_accepts_raw_strings(self):
        assert decide(make_assessment(), "AUTO").confidence_score == 85
        assert decide(make_assessment(), "SEMI_AUTO").confidence_score == 90


class TestTotality:
    def test_every_combination_returns_a_decision(self):
        """Exhaustive sweep over the input space."""
        for levels, pii, legal, sentiment, automation in itertools.product(
            itertools.product(RiskLevel, repeat=3),
            (False, True),
            (False, True),
            Sentiment,
            [*ALL_LEVELS, "UNKNOWN"],
        ):
            assessment = make_assessment(*levels, pii=pii, legal=legal, sentiment=sentiment)
            first = decide(assessment, automation)
            assert first == decide(assessment, automation)
            assert first.decision in Decision
            assert 0 <= first.confidence_score <= 100
