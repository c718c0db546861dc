"""GeneratedArtifact model: first-writer-wins storage for generated readings."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base


class GeneratedArtifact(Base):
    """Generated horoscope / tarot / I Ching / dream payloads.

    Rows are inserted once and never updated; the unique constraint on
    (user_id, artifact_type, period_id) is what makes concurrent requests converge.
    """

    __tablename__ = "generated_artifacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    artifact_type = Column(String(50), nullable=False)  # ArtifactType enum value
    period_id = Column(String(100), nullable=False)  # YYYY-MM-DD or req-<token>

    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("user_id", "artifact_type", "period_id", name="uq_user_artifact_period"),
    )
