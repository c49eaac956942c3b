"""Tests for Slack and WhatsApp alerts."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from review_buddy.brand import BrandSettings
from review_buddy.notifications import (
    AlertMessage,
    NotificationStatus,
    SlackNotifier,
    WhatsAppNotifier,
    build_alert_blocks,
    build_alert_body,
    highest_risk_label,
)
from review_buddy.notifications.models import review_url, truncate_review
from review_buddy.notifications.whatsapp import whatsapp_address
from review_buddy.triage.models import RiskAssessment, RiskLevel


def make_brand(**overrides) -> BrandSettings:
    values = dict(
        company_name="Acme Bikes",
        brand_tone="Professional",
        automation_level="SEMI_AUTO",
        slack_enabled=True,
        slack_webhook_url="https://hooks.slack.com/services/T0/B0/xyz",
        slack_channel_name="#reviews",
        whatsapp_enabled=True,
        twilio_account_sid="AC123",
        twilio_auth_token="secret-token",
        twilio_phone_number="+14155238886",
        whatsapp_admin_number="+31612345678",
    )
    values.update(overrides)
    return BrandSettings(**values)


def make_alert(**overrides) -> AlertMessage:
    assessment = RiskAssessment(
        content_risk=RiskLevel.HIGH,
        reputational_risk=RiskLevel.MEDIUM,
        contextual_risk=RiskLevel.LOW,
        legal_risk_detected=True,
    )
    values = dict(
        reviewer_name="Piet",
        rating=2.0,
        review_text="I will sue you, refund me now!",
        assessment=assessment,
        confidence_score=95,
        reason="Escalation required due to: high content risk, legal risk detected",
    )
    values.update(overrides)
    return AlertMessage.build(**values)


def mock_async_client(response=None, error=None):
    """Patchable stand-in for httpx.AsyncClient used as a context manager."""
    client = AsyncMock()
    client.post = AsyncMock(return_value=response, side_effect=error)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


class TestAlertMessage:
    @pytest.mark.parametrize(
        "levels,expected",
        [
            ((RiskLevel.LOW, RiskLevel.LOW, RiskLevel.LOW), "Low"),
            ((RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.LOW), "Medium"),
            ((RiskLevel.MEDIUM, RiskLevel.LOW, RiskLevel.HIGH), "High"),
        ],
    )
    def test_highest_risk_label(self, levels, expected):
        assessment = RiskAssessment(
            content_risk=levels[0], reputational_risk=levels[1], contextual_risk=levels[2]
        )
        assert highest_risk_label(assessment) == expected

    def test_truncates_long_reviews(self):
        assert truncate_review("x" * 250) == "x" * 200 + "..."
        assert truncate_review("x" * 200) == "x" * 200

    def test_defaults(self):
        alert = make_alert(reviewer_name=None, reason=None)
        assert alert.reviewer_name == "Anonymous"
        assert alert.reason == "High risk or complex situation detected"
        assert alert.action_required == "Manual review required - check dashboard."

    def test_summary(self):
        assert make_alert().summary == (
            "ReviewBuddy Alert: Piet left a 2/10 review that needs attention."
        )


class TestReviewUrl:
    def test_built_from_base_url(self):
        with patch("review_buddy.notifications.models.settings") as settings:
            settings.APP_BASE_URL = "https://reviews.acme.test/"
            assert review_url("r-1") == "https://reviews.acme.test/dashboard/reviews/r-1"

    def test_none_without_base_url(self):
        with patch("review_buddy.notifications.models.settings") as settings:
            settings.APP_BASE_URL = ""
            assert review_url("r-1") is None


class TestSlackBlocks:
    def test_fields(self):
        blocks = build_alert_blocks(make_alert())
        assert blocks[0]["type"] == "header"
        fields = [f["text"] for f in blocks[3]["fields"]]
        assert fields == [
            "*Reviewer:*\nPiet",
            "*Rating:*\n:star: 2/10",
            "*Risk Level:*\nHigh",
            "*Confidence:*\n95%",
        ]

    def test_link_only_with_url(self):
        assert "View Review" not in str(build_alert_blocks(make_alert()))
        blocks = build_alert_blocks(make_alert(review_url="https://app.example.com/r/1"))
        assert blocks[-1]["text"]["text"] == (
            "<https://app.example.com/r/1|View Review in ReviewBuddy>"
        )


class TestSlackNotifier:
    @pytest.mark.asyncio
    async def test_skipped_when_disabled(self):
        result = await SlackNotifier().send(make_brand(slack_enabled=False), make_alert())
        assert result.status == NotificationStatus.SKIPPED
        assert result.message == "Slack not configured"

    @pytest.mark.asyncio
    async def test_skipped_without_webhook(self):
        result = await SlackNotifier().send(make_brand(slack_webhook_url=None), make_alert())
        assert result.status == NotificationStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_sent(self):
        with patch("review_buddy.notifications.slack.WebhookClient") as webhook_class:
            webhook = MagicMock()
            webhook.send.return_value = MagicMock(status_code=200, body="ok")
            webhook_class.return_value = webhook

            result = await SlackNotifier().send(make_brand(), make_alert())

        assert result.status == NotificationStatus.SENT
        assert result.message == "Slack notification sent"
        webhook_class.assert_called_once()
        assert webhook_class.call_args.args[0] == "https://hooks.slack.com/services/T0/B0/xyz"
        kwargs = webhook.send.call_args.kwargs
        assert kwargs["text"].startswith("ReviewBuddy Alert")
        assert kwargs["blocks"][0]["type"] == "header"

    @pytest.mark.asyncio
    async def test_non_200_is_failed(self):
        with patch("review_buddy.notifications.slack.WebhookClient") as webhook_class:
            webhook_class.return_value.send.return_value = MagicMock(
                status_code=404, body="no_service"
            )
            result = await SlackNotifier().send(make_brand(), make_alert())

        assert result.status == NotificationStatus.FAILED
        assert result.message == "Slack webhook failed: 404 no_service"

    @pytest.mark.asyncio
    async def test_exception_is_failed(self):
        with patch("review_buddy.notifications.slack.WebhookClient") as webhook_class:
            webhook_class.return_value.send.side_effect = OSError("network down")
            result = await SlackNotifier().send(make_brand(), make_alert())

        assert result.status == NotificationStatus.FAILED
        assert "network down" in result.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout,expected", [(0.4, 1), (2.6, 3), (10, 10)])
    async def test_webhook_timeout_is_whole_seconds(self, timeout, expected):
        with patch("review_buddy.notifications.slack.WebhookClient") as webhook_class:
            webhook_class.return_value.send.return_value = MagicMock(status_code=200, body="ok")
            result = await SlackNotifier(timeout=timeout).send(make_brand(), make_alert())

        assert result.status == NotificationStatus.SENT
        assert webhook_class.call_args.kwargs["timeout"] == expected

    @pytest.mark.asyncio
    async def test_send_text_has_no_blocks(self):
        with patch("review_buddy.notifications.slack.WebhookClient") as webhook_class:
            webhook_class.return_value.send.return_value = MagicMock(status_code=200, body="ok")
            result = await SlackNotifier().send_text(make_brand(), "Slack alerts are working.")

        assert result.status == NotificationStatus.SENT
        webhook_class.return_value.send.assert_called_once_with(
            text="Slack alerts are working.", blocks=None
        )


class TestWhatsAppNotifier:
    def test_address(self):
        assert whatsapp_address("+31612345678") == "whatsapp:+31612345678"
        assert whatsapp_address("whatsapp:+3161") == "whatsapp:+3161"

    def test_body(self):
        body = build_alert_body(make_alert())
        assert "*Reviewer:* Piet" in body
        assert "*Rating:* 2/10" in body
        assert "*Risk Level:* High" in body
        assert '*Review Text:* "I will sue you, refund me now!"' in body

    @pytest.mark.asyncio
    async def test_skipped_when_disabled(self):
        result = await WhatsAppNotifier().send(make_brand(whatsapp_enabled=False), make_alert())
        assert result.status == NotificationStatus.SKIPPED
        assert result.message == "WhatsApp not enabled"

    @pytest.mark.asyncio
    async def test_skipped_when_credentials_missing(self):
        result = await WhatsAppNotifier().send(make_brand(twilio_auth_token=None), make_alert())
        assert result.status == NotificationStatus.SKIPPED
        assert result.message == "WhatsApp not configured"

    @pytest.mark.asyncio
    async def test_sent(self):
        response = MagicMock(status_code=201)
        response.json.return_value = {"sid": "SM42"}
        with patch("httpx.AsyncClient") as client_class:
            client = mock_async_client(response)
            client_class.return_value = client

            notifier = WhatsAppNotifier(api_url="https://twilio.test/2010-04-01")
            result = await notifier.send(make_brand(), make_alert())

        assert result.status == NotificationStatus.SENT
        assert result.message_id == "SM42"
        call = client.post.call_args
        assert call.args[0] == "https://twilio.test/2010-04-01/Accounts/AC123/Messages.json"
        assert call.kwargs["auth"] == ("AC123", "secret-token")
        assert call.kwargs["data"]["From"] == "whatsapp:+14155238886"
        assert call.kwargs["data"]["To"] == "whatsapp:+31612345678"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [ValueError("not json"), ["SM42"], {"sid": None}])
    async def test_sent_with_unreadable_body(self, body):
        response = MagicMock(status_code=201)
        if isinstance(body, Exception):
            response.json.side_effect = body
        else:
            response.json.return_value = body
        with patch("httpx.AsyncClient") as client_class:
            client_class.return_value = mock_async_client(response)
            result = await WhatsAppNotifier().send(make_brand(), make_alert())

        assert result.status == NotificationStatus.SENT
        assert result.message == "WhatsApp notification sent"
        assert result.message_id is None

    @pytest.mark.asyncio
    async def test_gateway_error_is_failed(self):
        response = MagicMock(status_code=400)
        response.json.return_value = {"code": 21211, "message": "Invalid 'To' Phone Number"}
        with patch("httpx.AsyncClient") as client_class:
            client_class.return_value = mock_async_client(response)
            result = await WhatsAppNotifier().send(make_brand(), make_alert())

        assert result.status == NotificationStatus.FAILED
        assert result.message == "WhatsApp failed: Invalid 'To' Phone Number"

    @pytest.mark.asyncio
    async def test_transport_error_is_failed(self):
        with patch("httpx.AsyncClient") as client_class:
            client_class.return_value = mock_async_client(error=httpx.ConnectError("refused"))
            result = await WhatsAppNotifier().send_text(make_brand(), "hello")

        assert result.status == NotificationStatus.FAILED
        assert result.message == "WhatsApp failed: refused"
