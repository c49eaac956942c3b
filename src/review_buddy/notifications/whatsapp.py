"""WhatsApp alerts through the Twilio Messages API."""

import logging

import httpx

from review_buddy.brand import BrandSettings
from review_buddy.config import settings
from review_buddy.notifications.models import AlertMessage, NotificationResult, format_rating

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def whatsapp_address(number: str) -> str:
    """Prefix a phone number with ``whatsapp:`` unless it already is."""
    number = number.strip()
    if number.startswith(WHATSAPP_PREFIX):
        return number
    return f"{WHATSAPP_PREFIX}{number}"


def build_alert_body(alert: AlertMessage) -> str:
    """Build the WhatsApp message text (WhatsApp renders *bold*)."""
    return (
        "\U0001f6a8 *New High Risk Review Notification* \U0001f6a8\n\n"
        f"*Reviewer:* {alert.reviewer_name}\n"
        f"*Rating:* {format_rating(alert.rating)}/10\n"
        f"*Risk Level:* {alert.risk_level}\n"
        f"*Confidence:* {alert.confidence_score}%\n\n"
        f"*Reason:* {alert.reason}\n\n"
        f"*Action Required:* {alert.action_required}\n\n"
        f'*Review Text:* "{alert.review_excerpt}"'
    )


def _twilio_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"Twilio API error: {response.status_code}"
    message = data.get("message") if isinstance(data, dict) else None
    return message or f"Twilio API error: {response.status_code}"


def _message_sid(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    sid = data.get("sid") if isinstance(data, dict) else None
    return sid if isinstance(sid, str) else None


class WhatsAppNotifier:
    """Send review alerts to the brand's admin number over WhatsApp."""

    def __init__(self, api_url: str | None = None, timeout: float | None = None):
        self.api_url = (api_url or settings.TWILIO_API_URL).rstrip("/")
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT

    async def send_text(self, brand: BrandSettings, body: str) -> NotificationResult:
        """Send a raw text message. Never raises."""
        if not brand.whatsapp_enabled:
            return NotificationResult.skipped("WhatsApp not enabled")
        if not brand.whatsapp_configured:
            logger.info("WhatsApp notification skipped: missing configuration")
            return NotificationResult.skipped("WhatsApp not configured")

        url = f"{self.api_url}/Accounts/{brand.twilio_account_sid}/Messages.json"
        payload = {
            "From": whatsapp_address(brand.twilio_phone_number),
            "To": whatsapp_address(brand.whatsapp_admin_number),
            "Body": body,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    data=payload,
                    auth=(brand.twilio_account_sid, brand.twilio_auth_token),
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp notification error: {type(e).__name__}: {e}")
            return NotificationResult.failed(f"WhatsApp failed: {e}")

        if response.status_code not in (200, 201):
            error = _twilio_error(response)
            logger.error(f"WhatsApp notification failed: {error}")
            return NotificationResult.failed(f"WhatsApp failed: {error}")

        message_id = _message_sid(response)
        logger.info(f"WhatsApp notification sent: {message_id}")
        return NotificationResult.sent("WhatsApp notification sent", message_id=message_id)

    async def send(self, brand: BrandSettings, alert: AlertMessage) -> NotificationResult:
        """Send one alert. Never raises; failures come back as a failed result."""
        return await self.send_text(brand, build_alert_body(alert))
