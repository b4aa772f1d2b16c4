"""Shared fixtures: in-memory catalog database, fake clock and fake strategies."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from nexuscat.core.security import SecretEncryption
from nexuscat.db.init import create_session_factory, drop_db, init_db
from nexuscat.discovery.base import ModelDescriptor

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Keys that pass the provider format checks
GROQ_KEY = "gsk_abcdefghijklmnop1234"
OPENROUTER_KEY = "sk-or-v1-abcdefghijklmnopqrstuvwx"
OPENAI_KEY = "sk-abcdefghijklmnopqrstuvwxyz012345"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeModelSource:
    """Discovery strategy returning canned models and counting calls."""

    def __init__(
        self,
        provider: str,
        models: list[ModelDescriptor] | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.provider = provider
        self.models = models or []
        self.error = error
        self.gate = gate
        self.calls = 0

    async def discover_models(self, resolver) -> list[ModelDescriptor]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [model.copy() for model in self.models]

    def supports_discovery(self) -> bool:
        return True


def make_model(provider: str, model: str, **kwargs) -> ModelDescriptor:
    return ModelDescriptor(provider_name=provider, model_name=model, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def encryption() -> SecretEncryption:
    return SecretEncryption(SecretEncryption.generate_key())


@pytest.fixture
async def session_factory() -> async_sessionmaker[AsyncSession]:
    """Create a fresh in-memory database per test.

    Yields:
        Session factory bound to the test database.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    await init_db(engine)

    yield create_session_factory(engine)

    await drop_db(engine)
    await engine.dispose()
