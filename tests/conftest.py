"""Shared fixtures: in-memory database, brand configuration and scripted LLMs."""

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from review_buddy.db.database import init_db
from review_buddy.db.models import BrandConfig, Review
from review_buddy.llm.base import BaseLLM


class ScriptedLLM(BaseLLM):
    """LLM double that replays canned responses in order.

    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.prompts: list[tuple[str, bool]] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def generate(self, prompt: str, json_mode: bool = False, **kwargs: Any) -> str:
        self.prompts.append((prompt, json_mode))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def check_health(self) -> bool:
        return True


def assessment_json(
    content: str = "Low",
    reputational: str = "Low",
    contextual: str = "Low",
    pii: bool = False,
    legal: bool = False,
    sentiment: str = "Positive",
    topics: list[str] | None = None,
    **details: list[str],
) -> str:
    """Serialize a risk assessment the way the model returns it."""
    return json.dumps(
        {
            "contentRisk": content,
            "reputationalRisk": reputational,
            "contextualRisk": contextual,
            "piiDetected": pii,
            "legalRiskDetected": legal,
            "sentiment": sentiment,
            "topics": topics if topics is not None else ["service", "staff"],
            "details": details,
            "confidence": 88,
        }
    )


@pytest.fixture
def risk_json():
    """Factory for model-shaped risk assessment JSON."""
    return assessment_json


@pytest.fixture
def scripted_llm():
    """Factory for an LLM that replays the given responses."""
    return ScriptedLLM


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def brand_config(session) -> BrandConfig:
    """Active SEMI_AUTO brand with no notification channels enabled."""
    config = BrandConfig(
        company_name="Acme Bikes",
        brand_tone="Friendly",
        automation_level="SEMI_AUTO",
        kiyoh_api_key="kiyoh-key",
        kiyoh_location_id="1055555",
        kiyoh_tenant_id="98",
        gemini_api_key="brand-gemini-key",
        is_active=True,
    )
    session.add(config)
    await session.commit()
    return config


@pytest.fixture
def make_review(session):
    """Factory that inserts a review and returns it."""

    async def _make(
        review_text: str = "Great service, highly recommend!",
        rating: float = 9,
        **fields: Any,
    ) -> Review:
        review = Review(
            review_text=review_text,
            rating=rating,
            reviewer_name=fields.pop("reviewer_name", "Jan de Vries"),
            platform=fields.pop("platform", "kiyoh"),
            **fields,
        )
        session.add(review)
        await session.commit()
        return review

    return _make


@pytest.fixture
def llm_factory():
    """Build an llm_factory that always hands out the given LLM."""

    def _factory(llm: BaseLLM) -> AsyncMock:
        return AsyncMock(return_value=llm)

    return _factory
