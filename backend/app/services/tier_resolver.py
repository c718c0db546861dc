"""TierResolver: user identity -> subscription tier, re-read on every request.

A user with no subscription row is "not provisioned", which is a different
condition from "legitimately free"; the resolver raises SubscriptionUnknown
rather than guessing a default tier.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from app.core.exceptions import SubscriptionUnknown
from app.domain.entitlements import Tier

logger = structlog.get_logger(__name__)

# Statuses under which a paid tier has lapsed; the user keeps free access
LAPSED_STATUSES = frozenset({"expired", "paused"})


@dataclass(frozen=True)
class SubscriptionState:
    """Read-only view of a user's billing state."""

    user_id: str
    tier: str | None
    status: str
    external_billing_ref: str | None = None


@runtime_checkable
class SubscriptionStateProvider(Protocol):
    """Read-only source of SubscriptionState, at most one per user."""

    async def get_by_user_id(self, user_id: str) -> SubscriptionState | None:
        ...


class TierResolver:
    """Resolves a Tier from the provider. Side-effect free and uncached."""

    def __init__(self, provider: SubscriptionStateProvider):
        self.provider = provider

    async def resolve(self, user_id: str) -> Tier:
        """Resolve the effective tier for ``user_id``.

        Raises:
            SubscriptionUnknown: No row, missing tier, or unrecognised tier value
            PersistenceFailure: The provider's backing store is unavailable
        """
        state = await self.provider.get_by_user_id(user_id)
        if state is None:
            raise SubscriptionUnknown(user_id, "no subscription state")

        if not state.tier:
            raise SubscriptionUnknown(user_id, "subscription state has no tier")

        try:
            tier = Tier(state.tier)
        except ValueError:
            raise SubscriptionUnknown(user_id, f"unrecognised tier {state.tier!r}") from None

        if tier != Tier.FREE and state.status in LAPSED_STATUSES:
            logger.info("tier_lapsed", user_id=user_id, tier=tier.value, status=state.status)
            return Tier.FREE

        return tier
