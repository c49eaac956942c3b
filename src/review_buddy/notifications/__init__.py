"""Alert delivery to Slack and WhatsApp."""

from review_buddy.notifications.models import (
    AlertMessage,
    NotificationResult,
    NotificationStatus,
    highest_risk_label,
)
from review_buddy.notifications.slack import SlackNotifier, build_alert_blocks
from review_buddy.notifications.whatsapp import WhatsAppNotifier, build_alert_body

__all__ = [
    "AlertMessage",
    "NotificationResult",
    "NotificationStatus",
    "highest_risk_label",
    "SlackNotifier",
    "WhatsAppNotifier",
    "build_alert_blocks",
    "build_alert_body",
]
