"""CacheOrGeneratePipeline: entitlement-gated cache-or-generate for divinatory artifacts.

One request walks an explicit state machine:

    start -> authenticated -> entitled -> cache_checked -> (cache_hit | generating)
          -> persisted -> done

with ``denied`` and ``failed`` as terminal error states. Denied requests never
reach the store or a generator. There is no per-key lock: concurrent requests
for one key may each generate, and the store's conditional insert decides the
single canonical artifact every caller receives.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog

from app.artifacts.store import Artifact, ArtifactKey, ArtifactStore, PutResult
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    ErrorKind,
    GenerationError,
    PersistenceFailure,
    SubscriptionUnknown,
    UnknownFeature,
)
from app.domain.entitlements import (
    EntitlementPolicy,
    FeatureKey,
    Tier,
    feature_spec,
    get_entitlement_policy,
)
from app.domain.periods import PeriodClock
from app.generation.base import Generator, GeneratorRegistry
from app.services.tier_resolver import TierResolver

logger = structlog.get_logger(__name__)


class PipelineState(StrEnum):
    START = "start"
    AUTHENTICATED = "authenticated"
    ENTITLED = "entitled"
    CACHE_CHECKED = "cache_checked"
    CACHE_HIT = "cache_hit"
    GENERATING = "generating"
    PERSISTED = "persisted"
    DONE = "done"
    DENIED = "denied"
    FAILED = "failed"


class ObtainStatus(StrEnum):
    ALLOWED = "allowed"
    DENIED = "denied"
    FAILED = "failed"


# Valid transitions; DONE, DENIED and FAILED are terminal
TRANSITIONS: dict[PipelineState, tuple[PipelineState, ...]] = {
    PipelineState.START: (PipelineState.AUTHENTICATED, PipelineState.FAILED),
    PipelineState.AUTHENTICATED: (PipelineState.ENTITLED, PipelineState.DENIED, PipelineState.FAILED),
    PipelineState.ENTITLED: (PipelineState.CACHE_CHECKED, PipelineState.FAILED),
    PipelineState.CACHE_CHECKED: (PipelineState.CACHE_HIT, PipelineState.GENERATING),
    PipelineState.GENERATING: (PipelineState.PERSISTED, PipelineState.CACHE_HIT, PipelineState.FAILED),
    PipelineState.CACHE_HIT: (PipelineState.DONE,),
    PipelineState.PERSISTED: (PipelineState.DONE,),
    PipelineState.DONE: (),
    PipelineState.DENIED: (),
    PipelineState.FAILED: (),
}


@dataclass
class ObtainResult:
    """Outcome of obtain_artifact, structured enough to render without a second call."""

    status: ObtainStatus
    feature: str
    tier: Tier | None = None
    artifact: Artifact | None = None
    from_cache: bool | None = None
    error_kind: ErrorKind | None = None
    upgrade_required: bool = False
    required_tier: Tier | None = None
    message: str | None = None
    states: list[PipelineState] = field(default_factory=list)


@dataclass
class EntitlementSummary:
    tier: Tier
    allowed: list[FeatureKey]
    locked: dict[FeatureKey, Tier | None]


class _Run:
    """Per-request state tracker; records every transition and logs it."""

    def __init__(self, user_id: str | None, feature: str):
        self.feature = feature
        self.state = PipelineState.START
        self.states = [PipelineState.START]
        self.tier: Tier | None = None
        self.log = logger.bind(user_id=user_id, feature=feature)

    def advance(self, new_state: PipelineState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid pipeline transition {self.state} -> {new_state}")
        self.state = new_state
        self.states.append(new_state)

    def fail(self, kind: ErrorKind, message: str) -> ObtainResult:
        self.advance(PipelineState.FAILED)
        self.log.warning("artifact_request_failed", error_kind=kind.value, tier=self.tier, reason=message)
        return ObtainResult(
            status=ObtainStatus.FAILED,
            feature=self.feature,
            tier=self.tier,
            error_kind=kind,
            message=message,
            states=self.states,
        )

    def deny(self, required_tier: Tier | None) -> ObtainResult:
        self.advance(PipelineState.DENIED)
        self.log.info("artifact_request_denied", tier=self.tier, required_tier=required_tier)
        return ObtainResult(
            status=ObtainStatus.DENIED,
            feature=self.feature,
            tier=self.tier,
            error_kind=ErrorKind.ENTITLEMENT_DENIED,
            upgrade_required=True,
            required_tier=required_tier,
            message="This feature requires an upgraded plan.",
            states=self.states,
        )

    def served(self, artifact: Artifact, from_cache: bool, source: str) -> ObtainResult:
        self.advance(PipelineState.DONE)
        self.log.info(
            "artifact_served",
            tier=self.tier,
            period_id=artifact.key.period_id,
            from_cache=from_cache,
            source=source,
        )
        return ObtainResult(
            status=ObtainStatus.ALLOWED,
            feature=self.feature,
            tier=self.tier,
            artifact=artifact,
            from_cache=from_cache,
            states=self.states,
        )


class CacheOrGeneratePipeline:
    """Orchestrates tier resolution, entitlement, cache reuse, generation and persistence.

    Constructor dependency injection keeps every collaborator swappable:
    - tier_resolver: re-resolves the tier on every call (no cross-request caching)
    - store: first-writer-wins ArtifactStore, the source of truth for "the" artifact
    - generator: Generator (or GeneratorRegistry); never retried here
    - strict: raise UnknownFeature instead of returning a failed result
    """

    def __init__(
        self,
        tier_resolver: TierResolver,
        store: ArtifactStore,
        generator: Generator,
        policy: EntitlementPolicy | None = None,
        clock: PeriodClock | None = None,
        strict: bool = True,
    ):
        self.tier_resolver = tier_resolver
        self.store = store
        self.generator = generator
        self.policy = policy or get_entitlement_policy()
        self.clock = clock or PeriodClock()
        self.strict = strict
        # Strong references so abandoned requests still finish generating and persisting
        self._in_flight: set[asyncio.Task] = set()

    async def obtain_artifact(
        self,
        user_id: str | None,
        feature: FeatureKey | str,
        inputs: dict[str, Any] | None = None,
        cached_artifact: Artifact | None = None,
        request_token: str | None = None,
        now: datetime | None = None,
    ) -> ObtainResult:
        """Return the artifact for (user, feature, current period), generating at most once per winner.

        Args:
            user_id: Verified user id from the authenticator; None means unauthenticated
            feature: FeatureKey or its string value
            inputs: Domain inputs for the generator (natal chart, dream text, cards, hexagram)
            cached_artifact: Artifact the client already holds; reused if its key matches
            request_token: Idempotency token for per-request artifacts
            now: Current time (for deterministic testing)

        Returns:
            ObtainResult; errors are reported in it rather than raised

        Raises:
            UnknownFeature: Only when strict and ``feature`` is not catalogued
            ValueError: If ``request_token`` contains characters outside [A-Za-z0-9_-]
        """
        run = _Run(user_id, str(feature))

        # start -> authenticated
        if not user_id or not user_id.strip():
            return run.fail(ErrorKind.UNAUTHENTICATED, "No verified user for this request.")
        run.advance(PipelineState.AUTHENTICATED)

        try:
            run.tier = await self.tier_resolver.resolve(user_id)
        except SubscriptionUnknown as e:
            return run.fail(ErrorKind.ENTITLEMENT_UNRESOLVABLE, e.reason)
        except PersistenceFailure as e:
            return run.fail(ErrorKind.PERSISTENCE_FAILURE, str(e))

        # authenticated -> entitled | denied
        try:
            spec = feature_spec(feature)
            allowed = self.policy.is_allowed(run.tier, spec.feature)
        except UnknownFeature as e:
            if self.strict:
                raise
            return run.fail(ErrorKind.UNKNOWN_FEATURE, str(e))

        if not allowed:
            return run.deny(self.policy.minimum_tier(spec.feature))
        run.advance(PipelineState.ENTITLED)

        # entitled -> cache_checked
        key = ArtifactKey(
            user_id=user_id,
            artifact_type=spec.artifact_type,
            period_id=self.clock.period_id(spec.period, now=now, request_token=request_token),
        )

        if cached_artifact is not None and cached_artifact.key == key:
            run.advance(PipelineState.CACHE_CHECKED)
            run.advance(PipelineState.CACHE_HIT)
            return run.served(cached_artifact, from_cache=True, source="client")

        try:
            existing = await self.store.get(key)
        except PersistenceFailure as e:
            return run.fail(ErrorKind.PERSISTENCE_FAILURE, str(e))
        run.advance(PipelineState.CACHE_CHECKED)

        if existing is not None:
            run.advance(PipelineState.CACHE_HIT)
            return run.served(existing, from_cache=True, source="store")

        # cache_checked -> generating -> persisted | cache_hit (lost the race)
        run.advance(PipelineState.GENERATING)
        generation_inputs = {**(inputs or {}), "_period_id": key.period_id, "_tier": run.tier.value}

        task = asyncio.create_task(self._generate_and_persist(key, generation_inputs))
        self._in_flight.add(task)
        task.add_done_callback(self._finish_task)

        try:
            put = await asyncio.shield(task)
        except GenerationError as e:
            return run.fail(ErrorKind.GENERATION_FAILURE, str(e))
        except PersistenceFailure as e:
            return run.fail(ErrorKind.PERSISTENCE_FAILURE, str(e))

        if put.inserted:
            run.advance(PipelineState.PERSISTED)
            return run.served(put.artifact, from_cache=False, source="generator")

        run.log.info("artifact_persist_conflict", period_id=key.period_id)
        run.advance(PipelineState.CACHE_HIT)
        return run.served(put.artifact, from_cache=True, source="concurrent_writer")

    async def _generate_and_persist(self, key: ArtifactKey, inputs: dict[str, Any]) -> PutResult:
        """Generate once and conditionally insert. Runs to completion even if the caller goes away."""
        try:
            payload = await self.generator.generate(key.artifact_type, inputs)
        except GenerationError:
            raise
        except Exception as e:
            # Generator is a black box; timeouts and client errors all count as generation failure
            raise GenerationError(f"{type(e).__name__}: {e}") from e

        if not isinstance(payload, dict):
            raise GenerationError(f"Generator returned {type(payload).__name__}, expected a JSON object")

        return await self.store.put_if_absent(key, payload)

    def _finish_task(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("artifact_generation_task_failed", error_type=type(exc).__name__)

    async def drain(self) -> None:
        """Wait for in-flight generations (used on shutdown)."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def entitlements_for(self, user_id: str) -> EntitlementSummary:
        """Resolve the user's tier and split the catalogue into allowed and locked features.

        Raises:
            SubscriptionUnknown: If the user's subscription state is missing or malformed
        """
        tier = await self.tier_resolver.resolve(user_id)
        allowed = [f for f in FeatureKey if self.policy.is_allowed(tier, f)]
        locked = {f: self.policy.minimum_tier(f) for f in FeatureKey if f not in allowed}
        return EntitlementSummary(tier=tier, allowed=allowed, locked=locked)


def build_pipeline(
    settings: Settings | None = None,
    generator: Generator | None = None,
) -> CacheOrGeneratePipeline:
    """Wire a pipeline from settings: SQL subscriptions, configured store, Anthropic generator.

    Requires init_db() (and init_redis() for the redis backend) to have run.
    """
    from app.artifacts.redis_store import RedisArtifactStore
    from app.artifacts.sql_store import SqlArtifactStore
    from app.db.base import get_session_factory
    from app.db.redis import get_redis
    from app.db.subscriptions import SqlSubscriptionStateProvider
    from app.generation.anthropic_generator import AnthropicGenerator

    settings = settings or get_settings()
    session_factory = get_session_factory()
    clock = PeriodClock(settings.artifact_period_timezone)

    if settings.artifact_backend == "redis":
        store = RedisArtifactStore(get_redis(), clock, retention_days=settings.artifact_retention_days)
    elif settings.artifact_backend == "sql":
        store = SqlArtifactStore(session_factory)
    else:
        raise ValueError(f"Unknown artifact_backend: {settings.artifact_backend!r}")

    return CacheOrGeneratePipeline(
        tier_resolver=TierResolver(SqlSubscriptionStateProvider(session_factory)),
        store=store,
        generator=generator or GeneratorRegistry(default=AnthropicGenerator(settings=settings)),
        clock=clock,
        strict=not settings.is_production,
    )


_pipeline: CacheOrGeneratePipeline | None = None


def get_pipeline() -> CacheOrGeneratePipeline:
    """Get the process-wide pipeline, building it on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


def reset_pipeline() -> None:
    global _pipeline
    _pipeline = None
