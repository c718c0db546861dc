"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import FakeAsyncRedis

from app.artifacts.redis_store import RedisArtifactStore
from app.domain.periods import PeriodClock
from app.generation.fake import GeneratorFake
from app.services.pipeline import CacheOrGeneratePipeline
from app.services.tier_resolver import SubscriptionState, TierResolver


class InMemorySubscriptions:
    """Dict-backed SubscriptionStateProvider; tests mutate it to simulate billing changes."""

    def __init__(self):
        self.states: dict[str, SubscriptionState] = {}
        self.reads = 0

    def set(self, user_id: str, tier: str | None, status: str = "active") -> None:
        self.states[user_id] = SubscriptionState(user_id=user_id, tier=tier, status=status)

    def remove(self, user_id: str) -> None:
        self.states.pop(user_id, None)

    async def get_by_user_id(self, user_id: str) -> SubscriptionState | None:
        self.reads += 1
        return self.states.get(user_id)


@pytest.fixture
def generator_fake():
    """Fresh GeneratorFake with happy_path scenario (default)."""
    return GeneratorFake(scenario="happy_path")


@pytest.fixture
def generator_fake_slow():
    """GeneratorFake that sleeps so concurrent requests overlap."""
    return GeneratorFake(scenario="slow", delay=0.05)


@pytest.fixture
def generator_fake_failing():
    """GeneratorFake with failure scenario."""
    return GeneratorFake(scenario="failure")


@pytest.fixture
def subscriptions():
    """Provider pre-seeded with one user per tier."""
    provider = InMemorySubscriptions()
    provider.set("free-user", "free")
    provider.set("premium-user", "premium")
    provider.set("pro-user", "pro")
    return provider


@pytest.fixture
def clock():
    return PeriodClock("UTC")


@pytest.fixture
async def redis():
    """Create a fake Redis instance for testing."""
    fake_redis = FakeAsyncRedis(decode_responses=True)
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest.fixture
def artifact_store(redis, clock):
    return RedisArtifactStore(redis, clock, retention_days=30)


@pytest.fixture
def make_pipeline(subscriptions, artifact_store, clock, generator_fake):
    """Factory for pipelines; any collaborator can be swapped per test."""

    def _make(generator=None, store=None, strict=True, pipeline_clock=None):
        return CacheOrGeneratePipeline(
            tier_resolver=TierResolver(subscriptions),
            store=store or artifact_store,
            generator=generator or generator_fake,
            clock=pipeline_clock or clock,
            strict=strict,
        )

    return _make
