"""Tests for SqlArtifactStore and SqlSubscriptionStateProvider on SQLite.

Uses a file-backed aiosqlite database so concurrent sessions share one schema.
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from app.artifacts.sql_store import SqlArtifactStore
from app.artifacts.store import ArtifactKey
from app.core.exceptions import PersistenceFailure
from app.db.base import create_tables, make_session_factory
from app.db.models import Subscription
from app.db.subscriptions import SqlSubscriptionStateProvider
from app.domain.entitlements import ArtifactType, Tier
from app.services.tier_resolver import TierResolver

pytestmark = pytest.mark.integration


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'oracle.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return SqlArtifactStore(session_factory)


@pytest.fixture
def key():
    return ArtifactKey(user_id="user-1", artifact_type=ArtifactType.ICHING_READING, period_id="req-xyz")


async def test_get_missing_returns_none(store, key):
    assert await store.get(key) is None


async def test_put_then_get(store, key):
    payload = {"judgment": "Perseverance furthers.", "changing_lines": [{"position": 3}]}

    result = await store.put_if_absent(key, payload)
    fetched = await store.get(key)

    assert result.inserted is True
    assert result.artifact.payload == payload
    assert fetched.key == key
    assert fetched.payload == payload


async def test_conflict_returns_existing_row(store, key):
    await store.put_if_absent(key, {"writer": "a"})
    second = await store.put_if_absent(key, {"writer": "b"})

    assert second.inserted is False
    assert second.artifact.payload == {"writer": "a"}


async def test_concurrent_puts_have_one_winner(store, key):
    results = await asyncio.gather(*[store.put_if_absent(key, {"writer": i}) for i in range(5)])

    assert sum(1 for r in results if r.inserted) == 1
    assert len({r.artifact.payload["writer"] for r in results}) == 1


async def test_same_period_different_type_is_separate(store, key):
    await store.put_if_absent(key, {"writer": "iching"})
    tarot = key.model_copy(update={"artifact_type": ArtifactType.TAROT_READING})

    result = await store.put_if_absent(tarot, {"writer": "tarot"})

    assert result.inserted is True
    assert (await store.get(key)).payload == {"writer": "iching"}


async def test_database_errors_become_persistence_failures(engine, key):
    store = SqlArtifactStore(make_session_factory(engine))
    # Drop the table so every statement fails
    async with engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE generated_artifacts")

    with pytest.raises(PersistenceFailure):
        await store.get(key)
    with pytest.raises(PersistenceFailure):
        await store.put_if_absent(key, {"writer": "a"})


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


async def _add_subscription(session_factory, **fields):
    async with session_factory() as session:
        session.add(Subscription(**fields))
        await session.commit()


async def test_provider_reads_subscription_row(session_factory):
    await _add_subscription(
        session_factory, user_id="user-1", tier="premium", status="active", external_billing_ref="sub_123"
    )

    state = await SqlSubscriptionStateProvider(session_factory).get_by_user_id("user-1")

    assert state.tier == "premium"
    assert state.status == "active"
    assert state.external_billing_ref == "sub_123"


async def test_provider_returns_none_for_missing_user(session_factory):
    assert await SqlSubscriptionStateProvider(session_factory).get_by_user_id("nobody") is None


async def test_resolver_over_sql_provider(session_factory):
    await _add_subscription(session_factory, user_id="lapsed", tier="pro", status="paused")
    await _add_subscription(session_factory, user_id="pro", tier="pro")

    resolver = TierResolver(SqlSubscriptionStateProvider(session_factory))

    assert await resolver.resolve("lapsed") == Tier.FREE
    assert await resolver.resolve("pro") == Tier.PRO
