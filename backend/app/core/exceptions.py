from enum import StrEnum


class ErrorKind(StrEnum):
    """Machine-readable failure kinds surfaced by the artifact pipeline."""

    UNAUTHENTICATED = "unauthenticated"
    ENTITLEMENT_UNRESOLVABLE = "entitlement_unresolvable"
    ENTITLEMENT_DENIED = "entitlement_denied"
    UNKNOWN_FEATURE = "unknown_feature"
    GENERATION_FAILURE = "generation_failure"
    PERSISTENCE_FAILURE = "persistence_failure"


class OracleError(Exception):
    """Base exception for the Oracle artifact service."""

    pass


class SubscriptionUnknown(OracleError):
    """Raised when a user's subscription state is missing or malformed."""

    def __init__(self, user_id: str, reason: str = "no subscription state"):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Subscription unknown for user '{user_id}': {reason}")


class UnknownFeature(OracleError):
    """Raised when a feature key is not in the feature catalogue."""

    def __init__(self, feature: object):
        self.feature = feature
        super().__init__(f"Unknown feature: {feature!r}")


class GenerationError(OracleError):
    """Raised when a generator cannot produce a payload."""

    pass


class PersistenceFailure(OracleError):
    """Raised when a store read or conditional insert fails on infrastructure."""

    pass
