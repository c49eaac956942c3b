"""Tests for configuration settings."""

import os
from unittest.mock import patch

from review_buddy.config import Settings


class TestSettings:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            s = Settings(_env_file=None)
            assert s.LLM_PROVIDER == "gemini"
            assert s.KIYOH_DEFAULT_TENANT_ID == "98"
            assert s.HEALTH_ALERT_ESCALATION_RATE == 30.0
            assert s.DATABASE_URL.startswith("sqlite+aiosqlite")

    def test_env_overrides(self):
        env = {
            "DATABASE_URL": "postgresql+asyncpg://db/reviews",
            "HEALTH_ALERT_MIN_REVIEWS": "25",
            "LLM_PROVIDER": "claude",
            "ANTHROPIC_API_KEY": "sk-test",
        }
        with patch.dict(os.environ, env, clear=True):
            s = Settings(_env_file=None)
            assert s.DATABASE_URL.startswith("postgresql")
            assert s.HEALTH_ALERT_MIN_REVIEWS == 25
            assert s.LLM_PROVIDER == "claude"
