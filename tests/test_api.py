"""Tests for the HTTP API."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from review_buddy.api.dependencies import get_processor, get_slack_notifier
from review_buddy.api.reviews import sse_frames
from review_buddy.db.database import get_session
from review_buddy.llm.exceptions import LLMProviderNotConfiguredError
from review_buddy.main import app
from review_buddy.notifications import NotificationResult
from review_buddy.triage.pipeline import ErrorEvent, ReviewProcessor, StepEvent
from review_buddy.triage.models import StepStatus


def parse_sse(body: str) -> list:
    frames = [chunk for chunk in body.split("\n\n") if chunk]
    assert all(frame.startswith("data: ") for frame in frames)
    payloads = [frame[len("data: "):] for frame in frames]
    return [p if p == "[DONE]" else json.loads(p) for p in payloads]


@pytest.fixture
def llm_holder():
    """Mutable slot for the LLM the processor hands out."""
    return {}


@pytest.fixture
async def client(session_maker, llm_holder):
    async def override_session():
        async with session_maker() as session:
            yield session

    async def llm_factory(api_key=None):
        if "llm" not in llm_holder:
            raise LLMProviderNotConfiguredError("no key", provider="gemini")
        return llm_holder["llm"]

    silent = AsyncMock()
    silent.send = AsyncMock(return_value=NotificationResult.skipped("Slack not configured"))
    processor = ReviewProcessor(
        session_maker=session_maker, llm_factory=llm_factory, slack=silent, whatsapp=silent
    )

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_processor] = lambda: processor
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await processor.wait_for_background_runs()
    app.dependency_overrides.clear()


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_root(self, client):
        data = (await client.get("/")).json()
        assert "name" in data
        assert data["version"] == "0.1.0"

    @pytest.mark.asyncio
    async def test_ready_reports_services(self, client, session_maker):
        with patch("review_buddy.api.health.async_session_maker", session_maker), \
             patch(
                 "review_buddy.api.health.get_llm",
                 AsyncMock(side_effect=LLMProviderNotConfiguredError("none", provider="none")),
             ):
            response = await client.get("/health/ready")

        data = response.json()
        assert data["status"] == "ready"
        assert data["services"]["database"] == "ok"
        assert data["services"]["llm"].startswith("warning")


class TestProcessEndpoint:
    @pytest.mark.asyncio
    async def test_streams_steps_then_final_then_done(
        self, client, brand_config, make_review, scripted_llm, risk_json, llm_holder
    ):
        review = await make_review()
        llm_holder["llm"] = scripted_llm(risk_json(), "Thank you, Jan!")

        response = await client.post(f"/api/reviews/{review.id}/process")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = parse_sse(response.text)
        assert frames[0] == {"step": 1, "status": "processing", "message": "Analyzing risk with scripted..."}
        assert frames[-1] == "[DONE]"
        final = frames[-2]
        assert final["final"] is True
        assert final["result"]["decision"]["decision"] == "AUTO_HANDLE"
        assert final["result"]["generatedResponse"] == "Thank you, Jan!"
        assert [f["step"] for f in frames[:-2]] == [1, 1, 2, 2, 3, 3, 4, 4, 5, 5]

    @pytest.mark.asyncio
    async def test_error_frame_has_no_done_marker(
        self, client, brand_config, make_review, scripted_llm, risk_json, llm_holder
    ):
        review = await make_review()
        llm_holder["llm"] = scripted_llm(risk_json(), RuntimeError("model overloaded"))

        frames = parse_sse((await client.post(f"/api/reviews/{review.id}/process")).text)

        assert frames[-1] == {
            "status": "error",
            "message": "Response generation failed: model overloaded",
        }
        assert "[DONE]" not in frames

    @pytest.mark.asyncio
    async def test_unknown_review_is_404(self, client, brand_config):
        response = await client.post("/api/reviews/missing/process")
        assert response.status_code == 404
        assert response.json() == {"error": "Review not found"}

    @pytest.mark.asyncio
    async def test_missing_brand_is_400(self, client, make_review):
        review = await make_review()
        response = await client.post(f"/api/reviews/{review.id}/process")
        assert response.status_code == 400
        assert response.json() == {"error": "Brand configuration not found"}

    @pytest.mark.asyncio
    async def test_missing_llm_key_is_500(self, client, brand_config, make_review):
        review = await make_review()
        response = await client.post(f"/api/reviews/{review.id}/process")
        assert response.status_code == 500
        assert response.json() == {"error": "LLM API key not configured"}


class TestSseFrames:
    @pytest.mark.asyncio
    async def test_step_frame_omits_empty_data(self):
        async def events():
            yield StepEvent(2, StepStatus.PROCESSING, "Determining decision...")
            yield ErrorEvent("boom")

        frames = [frame async for frame in sse_frames(events())]
        assert frames == [
            'data: {"step": 2, "status": "processing", "message": "Determining decision..."}\n\n',
            'data: {"status": "error", "message": "boom"}\n\n',
        ]


class TestReviewEndpoints:
    @pytest.mark.asyncio
    async def test_list_reviews(self, client, make_review):
        await make_review(status="escalated")
        await make_review()

        response = await client.get("/api/reviews", params={"status": "escalated"})

        data = response.json()
        assert data["total"] == 1
        assert data["totalPages"] == 1
        assert data["reviews"][0]["status"] == "escalated"
        assert "reviewText" in data["reviews"][0]

    @pytest.mark.asyncio
    async def test_get_review(self, client, make_review):
        review = await make_review()
        data = (await client.get(f"/api/reviews/{review.id}")).json()
        assert data["id"] == review.id
        assert data["auditLogs"] == []

    @pytest.mark.asyncio
    async def test_get_unknown_review(self, client):
        response = await client.get("/api/reviews/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Review not found"}

    @pytest.mark.asyncio
    async def test_patch_review(self, client, make_review):
        review = await make_review(decision="HOLD_FOR_APPROVAL")
        response = await client.patch(
            f"/api/reviews/{review.id}",
            json={"decision": "ESCALATE_TO_HUMAN", "humanNotes": "Call the customer"},
        )
        assert response.status_code == 200
        assert response.json()["decision"] == "ESCALATE_TO_HUMAN"
        assert response.json()["humanNotes"] == "Call the customer"

        logs = (await client.get("/api/audit-logs", params={"reviewId": review.id})).json()
        assert logs["total"] == 1
        assert logs["logs"][0]["actionType"] == "REVIEW_UPDATED"
        assert logs["logs"][0]["previousDecision"] == "HOLD_FOR_APPROVAL"

    @pytest.mark.asyncio
    async def test_patch_rejects_unknown_status(self, client, make_review):
        review = await make_review()
        response = await client.patch(f"/api/reviews/{review.id}", json={"status": "gone"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_patch_responded_without_response_is_400(self, client, make_review):
        review = await make_review()
        response = await client.patch(f"/api/reviews/{review.id}", json={"status": "responded"})
        assert response.status_code == 400
        assert response.json() == {"error": "A responded review needs a generated response"}

    @pytest.mark.asyncio
    async def test_publish_without_response(self, client, brand_config, make_review):
        review = await make_review(external_id="k-1")
        response = await client.post(f"/api/reviews/{review.id}/publish", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "No response to publish"}

    @pytest.mark.asyncio
    async def test_fetch_without_kiyoh_credentials(self, client, session, brand_config):
        brand_config.kiyoh_api_key = None
        await session.commit()

        response = await client.post("/api/reviews/fetch", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Kiyoh API credentials not configured"}

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, client, make_review):
        await make_review()
        data = (await client.get("/api/dashboard/stats")).json()
        assert data["overview"]["totalReviews"] == 1
        assert data["queues"]["newReviews"] == 1
        assert data["systemHealth"]["alertTriggered"] is False


@pytest.fixture
def slack_notifier():
    notifier = AsyncMock()
    notifier.send = AsyncMock(return_value=NotificationResult.sent("Slack notification sent"))
    notifier.send_text = AsyncMock(return_value=NotificationResult.sent("Slack notification sent"))
    app.dependency_overrides[get_slack_notifier] = lambda: notifier
    return notifier


@pytest.fixture
async def slack_brand(session, brand_config):
    brand_config.slack_enabled = True
    brand_config.slack_webhook_url = "https://hooks.slack.com/services/T0/B0/xyz"
    brand_config.slack_channel_name = "#reviews"
    await session.commit()
    return brand_config


class TestSlackEndpoint:
    @pytest.mark.asyncio
    async def test_sends_review_alert_and_audits(
        self, client, slack_notifier, slack_brand, make_review
    ):
        review = await make_review(
            "Refund me or I call my lawyer",
            2,
            decision="ESCALATE_TO_HUMAN",
            content_risk="High",
            reputational_risk="Medium",
            contextual_risk="Low",
            confidence_score=95,
            decision_rationale="Legal risk detected",
        )

        response = await client.post(
            "/api/slack", json={"reviewId": review.id, "actingUserId": "user-3"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Slack notification sent"}
        brand, alert = slack_notifier.send.await_args.args
        assert brand.slack_channel_name == "#reviews"
        assert alert.risk_level == "High"
        assert alert.confidence_score == 95
        assert alert.reason == "Legal risk detected"
        assert alert.action_required == "Immediate review and response needed"

        logs = (await client.get("/api/audit-logs", params={"reviewId": review.id})).json()
        assert logs["total"] == 1
        assert logs["logs"][0]["actionType"] == "SLACK_NOTIFICATION_SENT"
        assert logs["logs"][0]["humanUserId"] == "user-3"

    @pytest.mark.asyncio
    async def test_custom_message(self, client, slack_notifier, slack_brand):
        response = await client.post("/api/slack", json={"customMessage": "Deploy done"})

        assert response.status_code == 200
        assert slack_notifier.send_text.await_args.args[1] == "Deploy done"
        slack_notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_review_or_message(self, client, slack_notifier, slack_brand):
        response = await client.post("/api/slack", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "Either reviewId or customMessage is required"}

    @pytest.mark.asyncio
    async def test_slack_disabled_is_400(self, client, slack_notifier, brand_config, make_review):
        review = await make_review()
        response = await client.post("/api/slack", json={"reviewId": review.id})
        assert response.status_code == 400
        assert response.json() == {"error": "Slack integration not configured or disabled"}
        slack_notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_review_is_404(self, client, slack_notifier, slack_brand):
        response = await client.post("/api/slack", json={"reviewId": "missing"})
        assert response.status_code == 404
        assert response.json() == {"error": "Review not found"}

    @pytest.mark.asyncio
    async def test_failed_delivery_is_500_without_audit(
        self, client, slack_notifier, slack_brand, make_review
    ):
        slack_notifier.send.return_value = NotificationResult.failed("Slack webhook failed: 404")
        review = await make_review()

        response = await client.post("/api/slack", json={"reviewId": review.id})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to send Slack notification"}
        logs = (await client.get("/api/audit-logs", params={"reviewId": review.id})).json()
        assert logs["total"] == 0
