"""Entitlements API routes.

Provides GET /api/entitlements so the client can render locked features and
upgrade prompts up front instead of discovering denials per request.
"""

from fastapi import APIRouter, Depends, HTTPException

from app.api.routes.artifacts import get_artifact_pipeline
from app.core.auth import AuthenticatedUser, require_auth
from app.core.exceptions import SubscriptionUnknown
from app.domain.entitlements import FEATURE_CATALOGUE
from app.schemas.artifacts import EntitlementsResponse
from app.services.pipeline import CacheOrGeneratePipeline

router = APIRouter()


@router.get("", response_model=EntitlementsResponse)
async def get_entitlements(
    user: AuthenticatedUser = Depends(require_auth),
    pipeline: CacheOrGeneratePipeline = Depends(get_artifact_pipeline),
) -> EntitlementsResponse:
    """Get the caller's tier with allowed and locked features.

    The tier is re-resolved on every call so billing changes show up immediately.

    Raises:
        HTTPException(503): If the user's subscription has not been provisioned
    """
    try:
        summary = await pipeline.entitlements_for(user.user_id)
    except SubscriptionUnknown:
        raise HTTPException(status_code=503, detail="Subscription not provisioned yet. Please retry shortly.")

    labels = {key: spec.label for key, spec in FEATURE_CATALOGUE.items()}
    return EntitlementsResponse.from_summary(summary, labels)
