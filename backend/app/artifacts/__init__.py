"""Artifact persistence.

Provides:
- ArtifactKey / Artifact: the (user, type, period) identity and the stored payload
- ArtifactStore: the get / put_if_absent contract every backend honours
- SqlArtifactStore: unique-constraint backed store (Postgres, SQLite in tests)
- RedisArtifactStore: SET NX backed store with retention expiry
"""

from app.artifacts.redis_store import RedisArtifactStore
from app.artifacts.sql_store import SqlArtifactStore
from app.artifacts.store import Artifact, ArtifactKey, ArtifactStore, PutResult

__all__ = [
    "Artifact",
    "ArtifactKey",
    "ArtifactStore",
    "PutResult",
    "RedisArtifactStore",
    "SqlArtifactStore",
]
