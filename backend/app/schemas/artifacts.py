"""Pydantic schemas for the artifact and entitlement endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from app.artifacts.store import Artifact
from app.core.exceptions import ErrorKind
from app.domain.entitlements import FeatureKey, Tier
from app.domain.periods import REQUEST_TOKEN_PATTERN
from app.services.pipeline import EntitlementSummary, ObtainResult, ObtainStatus


class ObtainArtifactRequest(BaseModel):
    """Body of POST /api/artifacts/{feature}."""

    inputs: dict[str, Any] = Field(default_factory=dict, description="Domain inputs for the generator")
    request_token: str | None = Field(
        default=None,
        max_length=64,
        pattern=REQUEST_TOKEN_PATTERN,
        description="Idempotency token for per-request readings (tarot, I Ching, dream)",
    )
    cached_artifact: Artifact | None = Field(
        default=None,
        description="Artifact the client already holds; returned unchanged if still current",
    )


class ObtainArtifactResponse(BaseModel):
    status: ObtainStatus
    feature: str
    tier: Tier | None = None
    artifact: Artifact | None = None
    from_cache: bool | None = None
    error_kind: ErrorKind | None = None
    upgrade_required: bool = False
    required_tier: Tier | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: ObtainResult) -> "ObtainArtifactResponse":
        return cls(
            status=result.status,
            feature=result.feature,
            tier=result.tier,
            artifact=result.artifact,
            from_cache=result.from_cache,
            error_kind=result.error_kind,
            upgrade_required=result.upgrade_required,
            required_tier=result.required_tier,
            message=result.message,
        )


class LockedFeature(BaseModel):
    feature: FeatureKey
    label: str
    required_tier: Tier | None


class EntitlementsResponse(BaseModel):
    """Tier plus allowed/locked features, enough to render upgrade prompts."""

    tier: Tier
    allowed: list[FeatureKey]
    locked: list[LockedFeature]

    @classmethod
    def from_summary(cls, summary: EntitlementSummary, labels: dict[FeatureKey, str]) -> "EntitlementsResponse":
        return cls(
            tier=summary.tier,
            allowed=summary.allowed,
            locked=[
                LockedFeature(feature=f, label=labels[f], required_tier=tier)
                for f, tier in summary.locked.items()
            ],
        )
