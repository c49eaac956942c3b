"""CLI commands for ReviewBuddy."""

import asyncio
import json
import logging
import re
import sys

import click

from review_buddy.config import settings


class SecretRedactingFilter(logging.Filter):
    """Filter to redact sensitive information from logs."""

    # Patterns for common secrets
    SECRET_PATTERNS = [
        (re.compile(r"(api[_-]?key[\s:=]+)[\w-]{20,}", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(token[\s:=]+)[\w-]{20,}", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(password[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(secret[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(bearer\s+)[\w-]+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(hooks\.slack\.com/services/)\S+", re.IGNORECASE), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from log messages."""
        if isinstance(record.msg, str):
            for pattern, replacement in self.SECRET_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger().addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)

STEP_ICONS = {
    "processing": "...",
    "completed": "OK ",
    "skipped": "-- ",
    "failed": "ERR",
}


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """ReviewBuddy CLI."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command("init-database")
def init_database() -> None:
    """Create tables and the default brand configuration."""
    asyncio.run(_init_database())


async def _init_database() -> None:
    from review_buddy.brand import ensure_brand_config
    from review_buddy.db.database import async_session_maker, init_db

    await init_db()
    async with async_session_maker() as session:
        config = await ensure_brand_config(session)
    click.echo(f"Database initialized ({settings.DATABASE_URL})")
    click.echo(f"  Brand: {config.company_name} ({config.automation_level})")


@cli.command("fetch-reviews")
@click.option("--since", help="Only reviews created since this date (YYYY-MM-DD)")
@click.option("--limit", "-n", default=50, show_default=True, help="Maximum reviews to fetch")
def fetch_reviews(since: str | None, limit: int) -> None:
    """Import the newest reviews from Kiyoh."""
    asyncio.run(_fetch_reviews(since, limit))


async def _fetch_reviews(since: str | None, limit: int) -> None:
    from review_buddy.brand import BrandSettings, get_active_brand_config
    from review_buddy.db.database import async_session_maker, init_db
    from review_buddy.kiyoh.client import KiyohAPIError
    from review_buddy.reviews.importer import import_reviews

    await init_db()
    async with async_session_maker() as session:
        config = await get_active_brand_config(session)
        if config is None:
            click.echo("Error: No brand configuration. Run 'review-buddy init-database'.", err=True)
            sys.exit(1)
        try:
            result = await import_reviews(
                session, BrandSettings.from_record(config), date_since=since, limit=limit
            )
        except KiyohAPIError as e:
            logger.error(f"Fetch failed: {e}")
            sys.exit(1)

    click.echo(f"\nFetched {result.fetched} reviews from {result.location_name or 'Kiyoh'}")
    click.echo(f"  New: {result.new}")
    click.echo(f"  Updated: {result.updated}")
    click.echo(f"  Location average: {result.average_rating} ({result.total_reviews} reviews)")


@cli.command()
@click.argument("review_id", required=False)
@click.option("--all-new", is_flag=True, help="Process every review with status 'new'")
def process(review_id: str | None, all_new: bool) -> None:
    """Run the triage pipeline on one review or on all new reviews."""
    if not review_id and not all_new:
        click.echo("Error: Pass a review ID or --all-new.", err=True)
        sys.exit(1)
    asyncio.run(_process(review_id, all_new))


def _echo_event(event) -> None:
    from review_buddy.triage.pipeline import ErrorEvent, FinalEvent

    if isinstance(event, ErrorEvent):
        click.echo(f"  [ERR] {event.message}", err=True)
    elif isinstance(event, FinalEvent):
        decision = event.decision
        click.echo(
            f"  => {decision.decision.value} ({decision.confidence_score}%): {decision.rationale}"
        )
    else:
        icon = STEP_ICONS.get(event.status.value, event.status.value)
        click.echo(f"  [{icon}] {event.step}. {event.message}")


async def _process(review_id: str | None, all_new: bool) -> None:
    from sqlalchemy import select

    from review_buddy.db.database import async_session_maker, init_db
    from review_buddy.db.models import Review
    from review_buddy.llm.exceptions import LLMProviderNotConfiguredError
    from review_buddy.triage.models import ReviewStatus
    from review_buddy.triage.pipeline import ReviewProcessingError, ReviewProcessor

    await init_db()

    if all_new:
        async with async_session_maker() as session:
            result = await session.execute(
                select(Review.id)
                .where(Review.status == ReviewStatus.NEW.value)
                .order_by(Review.created_at)
            )
            review_ids = list(result.scalars().all())
        if not review_ids:
            click.echo("No new reviews to process.")
            return
    else:
        review_ids = [review_id]

    processor = ReviewProcessor()
    failures = 0
    for rid in review_ids:
        click.echo(f"\nReview {rid}")
        try:
            context = await processor.prepare(rid)
        except (ReviewProcessingError, LLMProviderNotConfiguredError, ValueError) as e:
            click.echo(f"  [ERR] {e}", err=True)
            failures += 1
            continue
        async for event in processor.events(context):
            _echo_event(event)
            if event.to_dict().get("status") == "error":
                failures += 1

    click.echo(f"\nProcessed {len(review_ids) - failures}/{len(review_ids)} reviews")
    if failures:
        sys.exit(1)


@cli.command()
def stats() -> None:
    """Show dashboard statistics."""
    asyncio.run(_stats())


async def _stats() -> None:
    from review_buddy.db.database import async_session_maker, init_db
    from review_buddy.reviews.service import dashboard_stats

    await init_db()
    async with async_session_maker() as session:
        data = await dashboard_stats(session)

    overview = data["overview"]
    queues = data["queues"]
    health = data["systemHealth"]

    click.echo("\nReviews")
    click.echo(f"  Total: {overview['totalReviews']}")
    click.echo(f"  Auto-handled: {overview['autoHandled']}")
    click.echo(f"  Held for approval: {overview['holdForApproval']}")
    click.echo(f"  Escalated: {overview['escalated']}")
    click.echo(f"  Responded: {overview['responded']}")
    click.echo(f"  Avg confidence: {overview['avgConfidenceScore']}%")
    click.echo(f"  Avg rating: {overview['avgRating']}")

    click.echo("\nQueues")
    click.echo(f"  New: {queues['newReviews']}")
    click.echo(f"  Pending approval: {queues['pendingApproval']}")
    click.echo(f"  Escalated: {queues['escalated']}")

    click.echo("\nSystem health (today)")
    click.echo(f"  Escalation rate: {health['escalationRate']:.1f}%")
    click.echo(f"  Avg confidence: {health['avgConfidenceScore']:.1f}")
    if health["alertTriggered"]:
        click.echo(f"  ALERT: {health['alertMessage']}")

    if logger.isEnabledFor(logging.DEBUG):
        click.echo(json.dumps(data["charts"], indent=2))


@cli.command("test-whatsapp")
@click.option("--message", "-m", default=None, help="Custom message text")
def test_whatsapp(message: str | None) -> None:
    """Send a test WhatsApp message to the configured admin number."""
    asyncio.run(_test_whatsapp(message))


async def _test_whatsapp(message: str | None) -> None:
    from review_buddy.brand import BrandSettings, get_active_brand_config
    from review_buddy.db.database import async_session_maker, init_db
    from review_buddy.notifications import NotificationStatus, WhatsAppNotifier

    await init_db()
    async with async_session_maker() as session:
        config = await get_active_brand_config(session)
    if config is None:
        click.echo("Error: No brand configuration. Run 'review-buddy init-database'.", err=True)
        sys.exit(1)

    brand = BrandSettings.from_record(config)
    body = message or (
        f"ReviewBuddy test message for {brand.company_name}. "
        "WhatsApp alerts are working."
    )
    result = await WhatsAppNotifier().send_text(brand, body)
    click.echo(result.message)
    if result.message_id:
        click.echo(f"  Message SID: {result.message_id}")
    if result.status != NotificationStatus.SENT:
        sys.exit(1)


@cli.command("test-slack")
@click.option("--review-id", "-r", default=None, help="Send the alert for this review")
@click.option("--message", "-m", default=None, help="Custom message text")
def test_slack(review_id: str | None, message: str | None) -> None:
    """Send a review alert or a test message to the configured Slack channel."""
    asyncio.run(_test_slack(review_id, message))


async def _test_slack(review_id: str | None, message: str | None) -> None:
    from review_buddy.brand import BrandSettings, get_active_brand_config
    from review_buddy.db.database import async_session_maker, init_db
    from review_buddy.notifications import NotificationStatus, SlackNotifier
    from review_buddy.reviews.service import send_slack_alert
    from review_buddy.triage.pipeline import ReviewNotFoundError

    await init_db()
    async with async_session_maker() as session:
        config = await get_active_brand_config(session)
        if config is None:
            click.echo("Error: No brand configuration. Run 'review-buddy init-database'.", err=True)
            sys.exit(1)

        brand = BrandSettings.from_record(config)
        if not brand.slack_configured:
            click.echo("Error: Slack integration not configured or disabled", err=True)
            sys.exit(1)

        if review_id:
            try:
                result = await send_slack_alert(session, review_id, brand)
            except ReviewNotFoundError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)
        else:
            body = message or (
                f"ReviewBuddy test message for {brand.company_name}. "
                "Slack alerts are working."
            )
            result = await SlackNotifier().send_text(brand, body)

    click.echo(result.message)
    if result.status != NotificationStatus.SENT:
        sys.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run("review_buddy.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
