"""Review processing pipeline.

One run takes a review through risk assessment, the decision policy, an
optional drafted reply, persistence, the audit trail, health metrics and
escalation alerts, yielding a progress event as each step starts and ends.

Steps:
    1. Risk assessment (LLM, falls back to a conservative assessment)
    2. Decision
    3. Reply drafting (LLM, skipped on escalation)
    4. Persisting the outcome
    5. Audit log and health metrics
    6. Slack alert (escalations and legal risk only)
    7. WhatsApp alert (escalations and legal risk only)

Steps 1, 3 and 4 are fatal: a failure ends the run with an ErrorEvent.
Failures in steps 5-7 are reported as ``failed`` and the run continues.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from review_buddy.audit import (
    AuditAction,
    ReviewProcessedMetadata,
    SlackNotificationMetadata,
    WhatsAppNotificationMetadata,
    build_audit_log,
)
from review_buddy.brand import BrandSettings, get_active_brand_config
from review_buddy.db.database import async_session_maker
from review_buddy.db.models import Review
from review_buddy.llm.base import BaseLLM
from review_buddy.llm.factory import get_llm
from review_buddy.notifications.models import (
    AlertMessage,
    NotificationResult,
    NotificationStatus,
    review_url,
)
from review_buddy.notifications.slack import SlackNotifier
from review_buddy.notifications.whatsapp import WhatsAppNotifier
from review_buddy.triage.assessment import AssessmentOutcome, RiskAssessor
from review_buddy.triage.health import HealthMetricsAggregator
from review_buddy.triage.models import (
    DECISION_RESPONSE_STATUS,
    DECISION_STATUS,
    Decision,
    DecisionResult,
    ReviewSnapshot,
    ReviewStatus,
    RiskAssessment,
    StepStatus,
)
from review_buddy.triage.policy import decide
from review_buddy.triage.prompts import build_response_prompt

logger = logging.getLogger(__name__)


class ReviewProcessingError(Exception):
    """Base exception for processing preconditions."""

    pass


class ReviewNotFoundError(ReviewProcessingError):
    """The review does not exist."""

    pass


class BrandConfigNotFoundError(ReviewProcessingError):
    """No active brand configuration exists."""

    pass


@dataclass(frozen=True)
class StepEvent:
    """Progress of one pipeline step."""

    step: int
    status: StepStatus
    message: str
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "step": self.step,
            "status": self.status.value,
            "message": self.message,
        }
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass(frozen=True)
class FinalEvent:
    """Result of a successful run."""

    assessment: RiskAssessment
    decision: DecisionResult
    generated_response: str
    fallback_used: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "final": True,
            "result": {
                "riskAssessment": self.assessment.to_json_dict(),
                "decision": self.decision.to_dict(),
                "generatedResponse": self.generated_response,
                "fallbackUsed": self.fallback_used,
            },
        }


@dataclass(frozen=True)
class ErrorEvent:
    """A fatal failure that ended the run."""

    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": "error", "message": self.message}


ProcessingEvent = StepEvent | FinalEvent | ErrorEvent

LLMFactory = Callable[..., Awaitable[BaseLLM]]

_NOTIFICATION_STEP_STATUS: dict[NotificationStatus, StepStatus] = {
    NotificationStatus.SENT: StepStatus.COMPLETED,
    NotificationStatus.SKIPPED: StepStatus.SKIPPED,
    NotificationStatus.FAILED: StepStatus.FAILED,
}


def _value(item: Any) -> Any:
    return getattr(item, "value", item)


@dataclass(frozen=True)
class ProcessingContext:
    """Everything one run needs, resolved before the run starts."""

    review: ReviewSnapshot
    brand: BrandSettings
    llm: BaseLLM
    review_url: str | None = None


class ReviewProcessor:
    """Runs the processing pipeline against reviews in the database."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
        llm_factory: LLMFactory | None = None,
        slack: SlackNotifier | None = None,
        whatsapp: WhatsAppNotifier | None = None,
    ):
        self.session_maker = session_maker
        self.llm_factory = llm_factory or get_llm
        self.slack = slack or SlackNotifier()
        self.whatsapp = whatsapp or WhatsAppNotifier()
        self._background_tasks: set[asyncio.Task] = set()

    async def prepare(self, review_id: str | None) -> ProcessingContext:
        """Check preconditions and resolve everything a run reads.

        Raises:
            ValueError: If no review id was given
            ReviewNotFoundError: If the review does not exist
            BrandConfigNotFoundError: If there is no active brand configuration
            LLMProviderNotConfiguredError: If no LLM credentials are available
        """
        if not review_id:
            raise ValueError("Review ID required")

        async with self.session_maker() as session:
            review = await session.get(Review, review_id)
            if review is None:
                raise ReviewNotFoundError(f"Review not found: {review_id}")

            config = await get_active_brand_config(session)
            if config is None:
                raise BrandConfigNotFoundError("Brand configuration not found")

            snapshot = ReviewSnapshot.from_record(review)
            brand = BrandSettings.from_record(config)

        llm = await self.llm_factory(api_key=brand.gemini_api_key)

        if snapshot.status != ReviewStatus.NEW:
            logger.info(
                f"Re-processing review {snapshot.id} (status: {_value(snapshot.status)}); "
                "previous results will be overwritten"
            )

        return ProcessingContext(
            review=snapshot, brand=brand, llm=llm, review_url=review_url(snapshot.id)
        )

    async def run(self, review_id: str) -> list[ProcessingEvent]:
        """Prepare and run to completion, returning every event."""
        context = await self.prepare(review_id)
        return [event async for event in self.events(context)]

    async def events(self, context: ProcessingContext) -> AsyncIterator[ProcessingEvent]:
        """Run the pipeline, yielding progress events in step order."""
        review = context.review
        brand = context.brand

        # Step 1: risk assessment
        provider = context.llm.provider_name
        yield StepEvent(1, StepStatus.PROCESSING, f"Analyzing risk with {provider}...")
        try:
            outcome: AssessmentOutcome = await RiskAssessor(context.llm).assess(review)
        except Exception as e:
            logger.error(f"Risk assessment failed for review {review.id}: {e}")
            yield ErrorEvent(f"Risk assessment failed: {e}")
            return

        assessment = outcome.assessment
        message = "Risk assessment complete"
        if outcome.fallback_used:
            message = "Risk assessment complete (fallback assessment used)"
        yield StepEvent(1, StepStatus.COMPLETED, message, assessment.to_json_dict())

        # Step 2: decision
        yield StepEvent(2, StepStatus.PROCESSING, "Determining decision...")
        decision = decide(assessment, brand.automation_level)
        yield StepEvent(2, StepStatus.COMPLETED, "Decision determined", decision.to_dict())

        # Step 3: reply drafting
        generated_response = ""
        if decision.decision == Decision.ESCALATE_TO_HUMAN:
            yield StepEvent(
                3, StepStatus.SKIPPED, "Response generation skipped - escalation required"
            )
        else:
            yield StepEvent(3, StepStatus.PROCESSING, "Generating response...")
            prompt = build_response_prompt(
                review.review_text, review.rating, brand.company_name, brand.brand_tone
            )
            try:
                generated_response = (await context.llm.generate(prompt)).strip()
            except Exception as e:
                logger.error(f"Response generation failed for review {review.id}: {e}")
                yield ErrorEvent(f"Response generation failed: {e}")
                return
            yield StepEvent(
                3, StepStatus.COMPLETED, "Response generated", {"response": generated_response}
            )

        # Step 4: persist
        yield StepEvent(4, StepStatus.PROCESSING, "Updating review...")
        try:
            status = await self._persist(review.id, assessment, decision, generated_response)
        except Exception as e:
            logger.error(f"Failed to update review {review.id}: {e}")
            yield ErrorEvent(f"Failed to update review: {e}")
            return
        yield StepEvent(
            4,
            StepStatus.COMPLETED,
            "Review updated",
            {
                "status": status.value,
                "responseStatus": DECISION_RESPONSE_STATUS[decision.decision].value,
            },
        )

        # Step 5: audit log and health metrics
        yield StepEvent(5, StepStatus.PROCESSING, "Creating audit log...")
        audit_error = await self._write_processed_audit(context, outcome, decision, generated_response)
        health_updated = await self._update_health(decision)
        if audit_error:
            yield StepEvent(
                5,
                StepStatus.FAILED,
                f"Audit log failed: {audit_error}",
                {"healthMetricsUpdated": health_updated},
            )
        else:
            message = "Audit log created"
            if not health_updated:
                message = "Audit log created (health metrics update failed)"
            yield StepEvent(
                5, StepStatus.COMPLETED, message, {"healthMetricsUpdated": health_updated}
            )

        # Steps 6 and 7: alerts
        if decision.decision == Decision.ESCALATE_TO_HUMAN or assessment.legal_risk_detected:
            alert = AlertMessage.build(
                reviewer_name=review.reviewer_name,
                rating=review.rating,
                review_text=review.review_text,
                assessment=assessment,
                confidence_score=decision.confidence_score,
                reason=decision.rationale,
                review_url=context.review_url,
            )

            yield StepEvent(6, StepStatus.PROCESSING, "Sending Slack notification...")
            result = await self._notify(self.slack, "Slack", brand, alert)
            await self._audit_notification(
                review.id,
                result,
                AuditAction.SLACK_NOTIFICATION_SENT,
                AuditAction.SLACK_NOTIFICATION_FAILED,
                SlackNotificationMetadata(
                    channel=brand.slack_channel_name,
                    error=result.message if result.status == NotificationStatus.FAILED else None,
                ),
            )
            yield StepEvent(6, _NOTIFICATION_STEP_STATUS[result.status], result.message)

            yield StepEvent(7, StepStatus.PROCESSING, "Sending WhatsApp notification...")
            result = await self._notify(self.whatsapp, "WhatsApp", brand, alert)
            await self._audit_notification(
                review.id,
                result,
                AuditAction.WHATSAPP_NOTIFICATION_SENT,
                AuditAction.WHATSAPP_NOTIFICATION_FAILED,
                WhatsAppNotificationMetadata(
                    message_id=result.message_id,
                    error=result.message if result.status == NotificationStatus.FAILED else None,
                ),
            )
            data = {"messageId": result.message_id} if result.message_id else None
            yield StepEvent(7, _NOTIFICATION_STEP_STATUS[result.status], result.message, data)

        logger.info(
            f"Processed review {review.id}: {decision.decision.value} "
            f"({decision.confidence_score}%)"
        )
        yield FinalEvent(assessment, decision, generated_response, outcome.fallback_used)

    async def stream(self, context: ProcessingContext) -> AsyncIterator[ProcessingEvent]:
        """Yield events from a run that outlives its consumer.

        The run executes in its own task and feeds an unbounded queue, so a
        consumer that stops reading (e.g. a closed HTTP connection) only
        stops delivery; the run itself still finishes and persists.
        """
        queue: asyncio.Queue = asyncio.Queue()
        finished = object()

        async def pump() -> None:
            try:
                async for event in self.events(context):
                    await queue.put(event)
            finally:
                await queue.put(finished)

        task = asyncio.create_task(pump())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_run_done)

        while True:
            event = await queue.get()
            if event is finished:
                break
            yield event

    async def wait_for_background_runs(self) -> None:
        """Wait until every detached run has finished."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def _on_run_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            logger.warning("Processing run was cancelled")
        elif task.exception() is not None:
            logger.error(f"Processing run crashed: {task.exception()!r}")

    async def _persist(
        self,
        review_id: str,
        assessment: RiskAssessment,
        decision: DecisionResult,
        generated_response: str,
    ) -> ReviewStatus:
        """Write the whole outcome in one transaction."""
        status = DECISION_STATUS[decision.decision]
        async with self.session_maker() as session:
            try:
                review = await session.get(Review, review_id)
                if review is None:
                    raise ReviewNotFoundError(f"Review not found: {review_id}")

                review.content_risk = assessment.content_risk.value
                review.reputational_risk = assessment.reputational_risk.value
                review.contextual_risk = assessment.contextual_risk.value
                review.pii_detected = assessment.pii_detected
                review.legal_risk_detected = assessment.legal_risk_detected
                review.risk_assessment_json = json.dumps(assessment.to_json_dict())
                review.sentiment = assessment.sentiment.value
                review.topics = json.dumps(assessment.topics)
                review.decision = decision.decision.value
                review.confidence_score = decision.confidence_score
                review.decision_rationale = decision.rationale
                review.generated_response = generated_response or None
                review.response_status = DECISION_RESPONSE_STATUS[decision.decision].value
                review.status = status.value
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return status

    async def _write_processed_audit(
        self,
        context: ProcessingContext,
        outcome: AssessmentOutcome,
        decision: DecisionResult,
        generated_response: str,
    ) -> str | None:
        """Write the REVIEW_PROCESSED entry. Returns the error text on failure."""
        entry = build_audit_log(
            AuditAction.REVIEW_PROCESSED,
            ReviewProcessedMetadata(
                fallback_used=outcome.fallback_used,
                automation_level=str(_value(context.brand.automation_level)),
            ),
            review_id=context.review.id,
            risk_assessment=outcome.assessment.to_json_dict(),
            decision=decision.decision.value,
            decision_rationale=decision.rationale,
            confidence_score=decision.confidence_score,
            generated_response=generated_response or None,
        )
        try:
            async with self.session_maker() as session:
                session.add(entry)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write audit log for review {context.review.id}: {e}")
            return str(e)
        return None

    async def _update_health(self, decision: DecisionResult) -> bool:
        try:
            async with self.session_maker() as session:
                await HealthMetricsAggregator(session).record_outcome(
                    decision.decision, decision.confidence_score
                )
        except Exception as e:
            logger.error(f"Failed to update system health: {e}")
            return False
        return True

    async def _notify(
        self,
        notifier: SlackNotifier | WhatsAppNotifier,
        channel: str,
        brand: BrandSettings,
        alert: AlertMessage,
    ) -> NotificationResult:
        try:
            return await notifier.send(brand, alert)
        except Exception as e:
            logger.error(f"{channel} notification error: {e}")
            return NotificationResult.failed(f"{channel} notification failed: {e}")

    async def _audit_notification(
        self,
        review_id: str,
        result: NotificationResult,
        sent_action: AuditAction,
        failed_action: AuditAction,
        metadata: SlackNotificationMetadata | WhatsAppNotificationMetadata,
    ) -> None:
        """Record a notification attempt that was actually made."""
        if result.status == NotificationStatus.SKIPPED:
            return
        action = sent_action if result.status == NotificationStatus.SENT else failed_action
        try:
            async with self.session_maker() as session:
                session.add(build_audit_log(action, metadata, review_id=review_id))
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write {action.value} audit log for review {review_id}: {e}")
