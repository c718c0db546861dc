"""Re-export all models so Base.metadata sees them."""

from app.db.models.generated_artifact import GeneratedArtifact
from app.db.models.subscription import Subscription

__all__ = [
    "GeneratedArtifact",
    "Subscription",
]
