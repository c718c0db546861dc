"""SQL-backed SubscriptionStateProvider over the subscriptions table."""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import PersistenceFailure
from app.db.models.subscription import Subscription
from app.services.tier_resolver import SubscriptionState

logger = structlog.get_logger(__name__)


class SqlSubscriptionStateProvider:
    """Reads the single subscriptions row for a user. Never writes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_by_user_id(self, user_id: str) -> SubscriptionState | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Subscription).where(Subscription.user_id == user_id))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("subscription_read_failed", user_id=user_id, error=str(e), error_type=type(e).__name__)
            raise PersistenceFailure(f"Subscription read failed for {user_id}") from e

        if row is None:
            return None

        return SubscriptionState(
            user_id=row.user_id,
            tier=row.tier,
            status=row.status,
            external_billing_ref=row.external_billing_ref,
        )
