"""RedisArtifactStore: SET NX backed ArtifactStore.

Each artifact is one JSON string under ``oracle:artifact:{user}:{type}:{period}``.
``SET ... NX`` gives first-writer-wins; a losing writer reads back the winner.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import redis.asyncio as redis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from app.artifacts.store import Artifact, ArtifactKey, PutResult
from app.core.exceptions import PersistenceFailure
from app.domain.periods import PeriodClock

logger = structlog.get_logger(__name__)


class RedisArtifactStore:
    """First-writer-wins artifact store on a shared Redis client."""

    KEY_PREFIX = "oracle:artifact:"

    def __init__(self, redis_client: redis.Redis, clock: PeriodClock, retention_days: int = 30):
        self.redis = redis_client
        self.clock = clock
        self.retention = timedelta(days=retention_days)

    def _key(self, key: ArtifactKey) -> str:
        return f"{self.KEY_PREFIX}{key.storage_key()}"

    def _expires_at(self, key: ArtifactKey, now: datetime) -> datetime:
        """Daily artifacts live until their period ends plus retention, never less than retention from now."""
        period_end = self.clock.period_end(key.period_id)
        base = max(period_end, now) if period_end is not None else now
        return base + self.retention

    def _decode(self, key: ArtifactKey, raw: str) -> Artifact:
        """Parse a stored value; corrupt or foreign values are storage faults, never served."""
        try:
            artifact = Artifact.model_validate_json(raw)
        except ValidationError as e:
            logger.error("artifact_store_corrupt_value", key=key.storage_key(), error=str(e))
            raise PersistenceFailure(f"Stored artifact is corrupt for {key.storage_key()}") from e

        if artifact.key != key:
            logger.error("artifact_store_key_mismatch", key=key.storage_key(), stored_key=artifact.key.storage_key())
            raise PersistenceFailure(f"Stored artifact belongs to a different key than {key.storage_key()}")
        return artifact

    async def get(self, key: ArtifactKey) -> Artifact | None:
        try:
            raw = await self.redis.get(self._key(key))
        except RedisError as e:
            logger.error("artifact_store_read_failed", key=key.storage_key(), error=str(e),
                         error_type=type(e).__name__)
            raise PersistenceFailure(f"Artifact read failed for {key.storage_key()}") from e

        if raw is None:
            return None
        return self._decode(key, raw)

    async def put_if_absent(self, key: ArtifactKey, payload: dict[str, Any]) -> PutResult:
        now = datetime.now(UTC)
        candidate = Artifact(key=key, payload=payload, created_at=now)
        expires_at = self._expires_at(key, now)

        try:
            written = await self.redis.set(
                self._key(key),
                candidate.model_dump_json(),
                nx=True,
                exat=int(expires_at.timestamp()),
            )
            if written:
                return PutResult(inserted=True, artifact=candidate)

            raw = await self.redis.get(self._key(key))
        except RedisError as e:
            logger.error("artifact_store_write_failed", key=key.storage_key(), error=str(e),
                         error_type=type(e).__name__)
            raise PersistenceFailure(f"Artifact insert failed for {key.storage_key()}") from e

        if raw is None:
            raise PersistenceFailure(f"Artifact vanished after conditional insert for {key.storage_key()}")

        return PutResult(inserted=False, artifact=self._decode(key, raw))
