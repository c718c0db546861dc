"""SqlArtifactStore: generated_artifacts table behind the ArtifactStore protocol.

Conditional insert is ``INSERT ... ON CONFLICT DO NOTHING`` against the
(user_id, artifact_type, period_id) unique constraint, followed by a read of
whichever row won. Postgres and SQLite dialects are supported.
"""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.artifacts.store import Artifact, ArtifactKey, PutResult
from app.core.exceptions import PersistenceFailure
from app.db.models.generated_artifact import GeneratedArtifact
from app.domain.entitlements import ArtifactType

logger = structlog.get_logger(__name__)

_CONFLICT_COLUMNS = ["user_id", "artifact_type", "period_id"]


def _to_artifact(row: GeneratedArtifact) -> Artifact:
    return Artifact(
        key=ArtifactKey(
            user_id=row.user_id,
            artifact_type=ArtifactType(row.artifact_type),
            period_id=row.period_id,
        ),
        payload=row.payload,
        created_at=row.created_at,
    )


class SqlArtifactStore:
    """First-writer-wins artifact store on a SQLAlchemy async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, key: ArtifactKey) -> Artifact | None:
        try:
            async with self.session_factory() as session:
                row = await self._select(session, key)
        except SQLAlchemyError as e:
            logger.error("artifact_store_read_failed", key=key.storage_key(), error=str(e),
                         error_type=type(e).__name__)
            raise PersistenceFailure(f"Artifact read failed for {key.storage_key()}") from e

        return _to_artifact(row) if row is not None else None

    async def put_if_absent(self, key: ArtifactKey, payload: dict[str, Any]) -> PutResult:
        try:
            async with self.session_factory() as session:
                stmt = self._insert(session).values(
                    user_id=key.user_id,
                    artifact_type=key.artifact_type.value,
                    period_id=key.period_id,
                    payload=payload,
                ).on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)

                result = await session.execute(stmt)
                await session.commit()
                inserted = result.rowcount == 1

                row = await self._select(session, key)
        except SQLAlchemyError as e:
            logger.error("artifact_store_write_failed", key=key.storage_key(), error=str(e),
                         error_type=type(e).__name__)
            raise PersistenceFailure(f"Artifact insert failed for {key.storage_key()}") from e

        if row is None:
            # Conflict reported but the winning row is gone (external cleanup raced us)
            raise PersistenceFailure(f"Artifact vanished after conditional insert for {key.storage_key()}")

        return PutResult(inserted=inserted, artifact=_to_artifact(row))

    @staticmethod
    async def _select(session: AsyncSession, key: ArtifactKey) -> GeneratedArtifact | None:
        result = await session.execute(
            select(GeneratedArtifact).where(
                GeneratedArtifact.user_id == key.user_id,
                GeneratedArtifact.artifact_type == key.artifact_type.value,
                GeneratedArtifact.period_id == key.period_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _insert(session: AsyncSession):
        dialect = session.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(GeneratedArtifact)
        if dialect == "sqlite":
            return sqlite.insert(GeneratedArtifact)
        raise PersistenceFailure(f"Conditional insert not supported on dialect '{dialect}'")
