"""Per-day rollup of processing outcomes.

One SystemHealth row exists per local calendar day. It is created by the
first review processed that day and updated in place afterwards. The
read-modify-write is not locked, so two runs finishing at the same moment
can lose one update.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.config import settings
from review_buddy.db.models import SystemHealth
from review_buddy.triage.models import Decision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertThresholds:
    """When a day's rollup should raise an alert."""

    escalation_rate: float
    min_reviews: int

    @classmethod
    def from_settings(cls) -> "AlertThresholds":
        return cls(
            escalation_rate=settings.HEALTH_ALERT_ESCALATION_RATE,
            min_reviews=settings.HEALTH_ALERT_MIN_REVIEWS,
        )


def start_of_day(now: datetime) -> datetime:
    """Local midnight for the given moment."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def evaluate_alert(record: SystemHealth, thresholds: AlertThresholds) -> bool:
    """Set the alert flag and message on a rollup. Returns the new flag."""
    triggered = (
        record.total_reviews >= thresholds.min_reviews
        and record.escalation_rate > thresholds.escalation_rate
    )
    record.alert_triggered = triggered
    record.alert_message = (
        f"Escalation rate {record.escalation_rate:.1f}% exceeds "
        f"{thresholds.escalation_rate:.1f}% ({record.escalated_count} of "
        f"{record.total_reviews} reviews escalated today)"
        if triggered
        else None
    )
    return triggered


class HealthMetricsAggregator:
    """Fold processing outcomes into today's SystemHealth row."""

    def __init__(self, session: AsyncSession, thresholds: AlertThresholds | None = None):
        self.session = session
        self.thresholds = thresholds or AlertThresholds.from_settings()

    async def get_for_day(self, now: datetime | None = None) -> SystemHealth | None:
        """Return the rollup for the day containing ``now``."""
        day_start = start_of_day(now or datetime.now())
        result = await self.session.execute(
            select(SystemHealth)
            .where(SystemHealth.timestamp >= day_start)
            .order_by(SystemHealth.timestamp)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_outcome(
        self,
        decision: Decision,
        confidence_score: int,
        now: datetime | None = None,
    ) -> SystemHealth:
        """Add one processed review to today's rollup and commit.

        The running average is weighted by the total before this review and
        divided by the total after it.
        """
        now = now or datetime.now()
        record = await self.get_for_day(now)

        if record is None:
            record = SystemHealth(
                total_reviews=1,
                auto_handled_count=1 if decision == Decision.AUTO_HANDLE else 0,
                hold_for_approval_count=1 if decision == Decision.HOLD_FOR_APPROVAL else 0,
                escalated_count=1 if decision == Decision.ESCALATE_TO_HUMAN else 0,
                escalation_rate=100.0 if decision == Decision.ESCALATE_TO_HUMAN else 0.0,
                override_frequency=0.0,
                avg_confidence_score=float(confidence_score),
                timestamp=now,
            )
            self.session.add(record)
            logger.info(f"Started health rollup for {now:%Y-%m-%d}")
        else:
            old_total = record.total_reviews or 0
            old_avg = record.avg_confidence_score or 0.0
            new_total = old_total + 1

            record.total_reviews = new_total
            if decision == Decision.AUTO_HANDLE:
                record.auto_handled_count = (record.auto_handled_count or 0) + 1
            elif decision == Decision.HOLD_FOR_APPROVAL:
                record.hold_for_approval_count = (record.hold_for_approval_count or 0) + 1
            elif decision == Decision.ESCALATE_TO_HUMAN:
                record.escalated_count = (record.escalated_count or 0) + 1

            record.escalation_rate = (record.escalated_count or 0) / new_total * 100
            record.avg_confidence_score = (old_avg * old_total + confidence_score) / new_total

        if evaluate_alert(record, self.thresholds):
            logger.warning(f"Health alert: {record.alert_message}")

        await self.session.commit()
        return record
