"""Database module for review buddy."""

from review_buddy.db.database import async_session_maker, engine, get_session, init_db
from review_buddy.db.models import AuditLog, Base, BrandConfig, Review, SystemHealth

__all__ = [
    "Base",
    "Review",
    "AuditLog",
    "SystemHealth",
    "BrandConfig",
    "engine",
    "async_session_maker",
    "get_session",
    "init_db",
]
