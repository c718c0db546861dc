"""ArtifactStore protocol and the value types it traffics in.

Stores are durable, first-writer-wins key/value maps over generated artifacts.
``put_if_absent`` is the only write: it never overwrites and always reports
whether this call or an earlier one owns the slot.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from app.domain.entitlements import ArtifactType


class ArtifactKey(BaseModel):
    """Addresses one artifact: (user, artifact type, validity period)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    artifact_type: ArtifactType
    period_id: str

    def storage_key(self) -> str:
        return f"{self.user_id}:{self.artifact_type.value}:{self.period_id}"


class Artifact(BaseModel):
    """A persisted generation result. Immutable once stored."""

    model_config = ConfigDict(frozen=True)

    key: ArtifactKey
    payload: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class PutResult:
    """Outcome of a conditional insert.

    inserted=True: this call wrote ``artifact``.
    inserted=False: the key was already taken; ``artifact`` is the existing one.
    """

    inserted: bool
    artifact: Artifact


@runtime_checkable
class ArtifactStore(Protocol):
    """Durable first-writer-wins artifact storage.

    Implementations raise PersistenceFailure on infrastructure faults.
    """

    async def get(self, key: ArtifactKey) -> Artifact | None:
        """Return the artifact stored under ``key``, or None."""
        ...

    async def put_if_absent(self, key: ArtifactKey, payload: dict[str, Any]) -> PutResult:
        """Atomically insert ``payload`` under ``key`` unless one already exists."""
        ...
