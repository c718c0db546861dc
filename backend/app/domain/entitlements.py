"""Tier, feature catalogue and the static entitlement table.

Pure domain logic with no external dependencies. The table is built once at
import time and never mutated; every endpoint consults it through
EntitlementPolicy rather than inlining tier checks.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from app.core.exceptions import SubscriptionUnknown, UnknownFeature


class Tier(StrEnum):
    """Subscription levels, ordered free < premium < pro."""

    FREE = "free"
    PREMIUM = "premium"
    PRO = "pro"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = (Tier.FREE, Tier.PREMIUM, Tier.PRO)


class FeatureKey(StrEnum):
    """Gated capabilities a user may invoke."""

    HOROSCOPE_GENERATION = "horoscope_generation"
    HOROSCOPE_ENHANCED = "horoscope_enhanced"
    DREAM_INTERPRETATION = "dream_interpretation"
    TAROT_READING = "tarot_reading"
    ICHING_GENERATION = "iching_generation"


class ArtifactType(StrEnum):
    """Persisted artifact kinds, one per gated feature."""

    DAILY_HOROSCOPE = "daily_horoscope"
    ENHANCED_HOROSCOPE = "enhanced_horoscope"
    DREAM_INTERPRETATION = "dream_interpretation"
    TAROT_READING = "tarot_reading"
    ICHING_READING = "iching_reading"


class PeriodPolicy(StrEnum):
    """How long a generated artifact may be reused."""

    DAILY = "daily"  # one per calendar day in the reference timezone
    PER_REQUEST = "per_request"  # keyed by a request-scoped token


@dataclass(frozen=True)
class FeatureSpec:
    """Catalogue entry binding a feature to the artifact it produces."""

    feature: FeatureKey
    artifact_type: ArtifactType
    period: PeriodPolicy
    label: str


FEATURE_CATALOGUE: Mapping[FeatureKey, FeatureSpec] = MappingProxyType({
    FeatureKey.HOROSCOPE_GENERATION: FeatureSpec(
        FeatureKey.HOROSCOPE_GENERATION, ArtifactType.DAILY_HOROSCOPE, PeriodPolicy.DAILY, "Daily Horoscope"
    ),
    FeatureKey.HOROSCOPE_ENHANCED: FeatureSpec(
        FeatureKey.HOROSCOPE_ENHANCED, ArtifactType.ENHANCED_HOROSCOPE, PeriodPolicy.DAILY, "Enhanced Horoscope"
    ),
    FeatureKey.DREAM_INTERPRETATION: FeatureSpec(
        FeatureKey.DREAM_INTERPRETATION,
        ArtifactType.DREAM_INTERPRETATION,
        PeriodPolicy.PER_REQUEST,
        "Dream Interpretations",
    ),
    FeatureKey.TAROT_READING: FeatureSpec(
        FeatureKey.TAROT_READING, ArtifactType.TAROT_READING, PeriodPolicy.PER_REQUEST, "Tarot Readings"
    ),
    FeatureKey.ICHING_GENERATION: FeatureSpec(
        FeatureKey.ICHING_GENERATION, ArtifactType.ICHING_READING, PeriodPolicy.PER_REQUEST, "I Ching Readings"
    ),
})

_FREE_FEATURES = frozenset({
    FeatureKey.HOROSCOPE_GENERATION,
    FeatureKey.TAROT_READING,
    FeatureKey.ICHING_GENERATION,
})
_PREMIUM_FEATURES = _FREE_FEATURES | {
    FeatureKey.HOROSCOPE_ENHANCED,
    FeatureKey.DREAM_INTERPRETATION,
}

DEFAULT_ENTITLEMENTS: Mapping[Tier, frozenset[FeatureKey]] = MappingProxyType({
    Tier.FREE: _FREE_FEATURES,
    Tier.PREMIUM: _PREMIUM_FEATURES,
    Tier.PRO: frozenset(FeatureKey),
})


def parse_feature(feature: FeatureKey | str) -> FeatureKey:
    """Coerce a feature value to FeatureKey.

    Raises:
        UnknownFeature: If the value names no catalogued feature
    """
    if isinstance(feature, FeatureKey):
        return feature
    try:
        return FeatureKey(feature)
    except ValueError:
        raise UnknownFeature(feature) from None


def feature_spec(feature: FeatureKey | str) -> FeatureSpec:
    return FEATURE_CATALOGUE[parse_feature(feature)]


class EntitlementPolicy:
    """Immutable Tier -> features capability table.

    Unknown features fail fast instead of defaulting to allow or deny, so a
    feature added to FeatureKey without a table decision is caught immediately.
    """

    def __init__(self, table: Mapping[Tier, Iterable[FeatureKey | str]] | None = None):
        source = DEFAULT_ENTITLEMENTS if table is None else table

        missing = [tier for tier in Tier if tier not in source]
        if missing:
            raise ValueError(f"Entitlement table missing tiers: {missing}")

        self._table: Mapping[Tier, frozenset[FeatureKey]] = MappingProxyType({
            Tier(tier): frozenset(parse_feature(f) for f in features) for tier, features in source.items()
        })

    def is_allowed(self, tier: Tier | str, feature: FeatureKey | str) -> bool:
        key = parse_feature(feature)
        return key in self._table[self._tier(tier)]

    def allowed_features(self, tier: Tier | str) -> frozenset[FeatureKey]:
        return self._table[self._tier(tier)]

    def minimum_tier(self, feature: FeatureKey | str) -> Tier | None:
        """Lowest tier that unlocks ``feature``, or None if no tier does."""
        key = parse_feature(feature)
        for tier in _TIER_ORDER:
            if key in self._table[tier]:
                return tier
        return None

    @staticmethod
    def _tier(tier: Tier | str) -> Tier:
        try:
            return Tier(tier)
        except ValueError:
            raise SubscriptionUnknown(user_id="", reason=f"invalid tier {tier!r}") from None


_policy: EntitlementPolicy | None = None


def get_entitlement_policy() -> EntitlementPolicy:
    """Get the process-wide EntitlementPolicy built from DEFAULT_ENTITLEMENTS."""
    global _policy
    if _policy is None:
        _policy = EntitlementPolicy()
    return _policy
