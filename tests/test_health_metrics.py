"""Tests for the daily health rollup."""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from review_buddy.db.models import SystemHealth
from review_buddy.triage.health import (
    AlertThresholds,
    HealthMetricsAggregator,
    evaluate_alert,
    start_of_day,
)
from review_buddy.triage.models import Decision

DAY = datetime(2026, 3, 14, 9, 30)
THRESHOLDS = AlertThresholds(escalation_rate=30.0, min_reviews=10)


def test_start_of_day():
    assert start_of_day(DAY) == datetime(2026, 3, 14)


class TestRecordOutcome:
    @pytest.mark.asyncio
    async def test_first_outcome_seeds_the_day(self, session):
        aggregator = HealthMetricsAggregator(session, THRESHOLDS)
        record = await aggregator.record_outcome(Decision.ESCALATE_TO_HUMAN, 95, now=DAY)

        assert record.total_reviews == 1
        assert record.escalated_count == 1
        assert record.auto_handled_count == 0
        assert record.escalation_rate == 100.0
        assert record.avg_confidence_score == 95.0

    @pytest.mark.asyncio
    async def test_incremental_mean(self, session):
        aggregator = HealthMetricsAggregator(session, THRESHOLDS)
        scores = [90, 75, 95, 85]
        decisions = [
            Decision.AUTO_HANDLE,
            Decision.HOLD_FOR_APPROVAL,
            Decision.ESCALATE_TO_HUMAN,
            Decision.HOLD_FOR_APPROVAL,
        ]

        expected_avg = 0.0
        for n, (decision, score) in enumerate(zip(decisions, scores)):
            record = await aggregator.record_outcome(decision, score, now=DAY.replace(hour=10 + n))
            expected_avg = (expected_avg * n + score) / (n + 1)
            assert record.avg_confidence_score == pytest.approx(expected_avg)

        assert record.total_reviews == 4
        assert record.auto_handled_count == 1
        assert record.hold_for_approval_count == 2
        assert record.escalated_count == 1
        assert record.escalation_rate == pytest.approx(25.0)

        count = (await session.execute(select(func.count(SystemHealth.id)))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_new_day_starts_a_new_row(self, session):
        aggregator = HealthMetricsAggregator(session, THRESHOLDS)
        await aggregator.record_outcome(Decision.AUTO_HANDLE, 90, now=DAY)
        record = await aggregator.record_outcome(
            Decision.HOLD_FOR_APPROVAL, 75, now=datetime(2026, 3, 15, 8, 0)
        )

        assert record.total_reviews == 1
        assert record.avg_confidence_score == 75.0
        count = (await session.execute(select(func.count(SystemHealth.id)))).scalar_one()
        assert count == 2

    @pytest.mark.asyncio
    async def test_alert_after_enough_escalations(self, session):
        aggregator = HealthMetricsAggregator(
            session, AlertThresholds(escalation_rate=30.0, min_reviews=3)
        )
        await aggregator.record_outcome(Decision.ESCALATE_TO_HUMAN, 95, now=DAY)
        record = await aggregator.record_outcome(Decision.ESCALATE_TO_HUMAN, 95, now=DAY)
        assert record.alert_triggered is False  # below min_reviews

        record = await aggregator.record_outcome(Decision.AUTO_HANDLE, 90, now=DAY)
        assert record.alert_triggered is True
        assert "66.7%" in record.alert_message


class TestEvaluateAlert:
    def test_below_rate(self):
        record = SystemHealth(total_reviews=20, escalated_count=2, escalation_rate=10.0)
        assert evaluate_alert(record, THRESHOLDS) is False
        assert record.alert_message is None

    def test_clears_previous_alert(self):
        record = SystemHealth(
            total_reviews=20,
            escalated_count=5,
            escalation_rate=25.0,
            alert_triggered=True,
            alert_message="old",
        )
        assert evaluate_alert(record, THRESHOLDS) is False
        assert record.alert_triggered is False
        assert record.alert_message is None
