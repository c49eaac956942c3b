"""Active brand configuration lookup and per-request snapshot."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from review_buddy.config import settings
from review_buddy.db.models import BrandConfig
from review_buddy.triage.models import AutomationLevel, BrandTone

logger = logging.getLogger(__name__)


def _as_enum(enum_cls, value):
    """Convert to the enum when the value is known, otherwise keep the raw string."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class BrandSettings:
    """Immutable copy of the active brand configuration.

    Resolved once per request and handed to every collaborator, so a
    settings change mid-run never affects a run already in flight.
    """

    company_name: str
    brand_tone: BrandTone | str
    automation_level: AutomationLevel | str
    kiyoh_api_key: str | None = None
    kiyoh_location_id: str | None = None
    kiyoh_tenant_id: str = settings.KIYOH_DEFAULT_TENANT_ID
    gemini_api_key: str | None = None
    slack_webhook_url: str | None = None
    slack_channel_name: str | None = None
    slack_enabled: bool = False
    whatsapp_enabled: bool = False
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    whatsapp_admin_number: str | None = None

    @classmethod
    def from_record(cls, record: BrandConfig) -> "BrandSettings":
        return cls(
            company_name=record.company_name,
            brand_tone=_as_enum(BrandTone, record.brand_tone),
            automation_level=_as_enum(AutomationLevel, record.automation_level),
            kiyoh_api_key=record.kiyoh_api_key,
            kiyoh_location_id=record.kiyoh_location_id,
            kiyoh_tenant_id=record.kiyoh_tenant_id or settings.KIYOH_DEFAULT_TENANT_ID,
            gemini_api_key=record.gemini_api_key,
            slack_webhook_url=record.slack_webhook_url,
            slack_channel_name=record.slack_channel_name,
            slack_enabled=bool(record.slack_enabled),
            whatsapp_enabled=bool(record.whatsapp_enabled),
            twilio_account_sid=record.twilio_account_sid,
            twilio_auth_token=record.twilio_auth_token,
            twilio_phone_number=record.twilio_phone_number,
            whatsapp_admin_number=record.whatsapp_admin_number,
        )

    @property
    def kiyoh_configured(self) -> bool:
        return bool(self.kiyoh_api_key and self.kiyoh_location_id)

    @property
    def slack_configured(self) -> bool:
        return self.slack_enabled and bool(self.slack_webhook_url)

    @property
    def whatsapp_configured(self) -> bool:
        return self.whatsapp_enabled and all(
            (
                self.twilio_account_sid,
                self.twilio_auth_token,
                self.twilio_phone_number,
                self.whatsapp_admin_number,
            )
        )


async def get_active_brand_config(session: AsyncSession) -> BrandConfig | None:
    """Return the active brand configuration, or None if there is none."""
    result = await session.execute(
        select(BrandConfig)
        .where(BrandConfig.is_active.is_(True))
        .order_by(BrandConfig.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def ensure_brand_config(session: AsyncSession) -> BrandConfig:
    """Return the active brand configuration, creating the default one if missing."""
    config = await get_active_brand_config(session)
    if config is not None:
        return config

    config = BrandConfig(
        company_name="My Company",
        brand_tone=BrandTone.PROFESSIONAL.value,
        automation_level=AutomationLevel.SEMI_AUTO.value,
        kiyoh_tenant_id=settings.KIYOH_DEFAULT_TENANT_ID,
        is_active=True,
    )
    session.add(config)
    await session.commit()
    logger.info("Created default brand configuration")
    return config
