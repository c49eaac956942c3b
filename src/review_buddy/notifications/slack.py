"""Slack incoming-webhook alerts."""

import asyncio
import logging
from typing import Any

from slack_sdk.webhook import WebhookClient

from review_buddy.brand import BrandSettings
from review_buddy.config import settings
from review_buddy.notifications.models import AlertMessage, NotificationResult, format_rating

logger = logging.getLogger(__name__)


def build_alert_blocks(alert: AlertMessage) -> list[dict[str, Any]]:
    """Build Block Kit blocks for a review alert."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": ":shield: ReviewBuddy Alert",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*A review requires your attention*"},
        },
        {"type": "divider"},
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Reviewer:*\n{alert.reviewer_name}"},
                {
                    "type": "mrkdwn",
                    "text": f"*Rating:*\n:star: {format_rating(alert.rating)}/10",
                },
                {"type": "mrkdwn", "text": f"*Risk Level:*\n{alert.risk_level}"},
                {"type": "mrkdwn", "text": f"*Confidence:*\n{alert.confidence_score}%"},
            ],
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Review:*\n> {alert.review_excerpt}"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Why this needs attention:*\n{alert.reason}",
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Recommended Action:*\n{alert.action_required}",
            },
        },
    ]

    if alert.review_url:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"<{alert.review_url}|View Review in ReviewBuddy>",
                },
            }
        )

    return blocks


class SlackNotifier:
    """Post review alerts to the brand's Slack incoming webhook."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT

    async def send(self, brand: BrandSettings, alert: AlertMessage) -> NotificationResult:
        """Send one alert. Never raises; failures come back as a failed result."""
        return await self._post(brand, alert.summary, build_alert_blocks(alert))

    async def send_text(self, brand: BrandSettings, text: str) -> NotificationResult:
        """Send a plain message, e.g. a manual note or a connection test."""
        return await self._post(brand, text)

    async def _post(
        self,
        brand: BrandSettings,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> NotificationResult:
        if not brand.slack_configured:
            return NotificationResult.skipped("Slack not configured")

        # slack_sdk wants whole seconds
        client = WebhookClient(brand.slack_webhook_url, timeout=max(1, round(self.timeout)))

        try:
            # WebhookClient is synchronous, run it off the event loop
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.send(text=text, blocks=blocks),
            )
        except Exception as e:
            logger.error(f"Slack notification error: {type(e).__name__}: {e}")
            return NotificationResult.failed(f"Slack notification failed: {e}")

        if response.status_code != 200:
            logger.error(
                f"Slack webhook returned {response.status_code}: {response.body}"
            )
            return NotificationResult.failed(
                f"Slack webhook failed: {response.status_code} {response.body}".strip()
            )

        logger.info(f"Slack message sent to {brand.slack_channel_name or 'webhook channel'}")
        return NotificationResult.sent("Slack notification sent")
