"""Artifact API routes: one entry point per gated feature."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.auth import AuthenticatedUser, require_auth
from app.core.exceptions import ErrorKind
from app.schemas.artifacts import ObtainArtifactRequest, ObtainArtifactResponse
from app.services.pipeline import CacheOrGeneratePipeline, ObtainStatus, get_pipeline

router = APIRouter()

# Failed results map to server-side statuses; denial is client-actionable (403)
FAILURE_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.ENTITLEMENT_UNRESOLVABLE: 503,
    ErrorKind.UNKNOWN_FEATURE: 500,
    ErrorKind.GENERATION_FAILURE: 502,
    ErrorKind.PERSISTENCE_FAILURE: 503,
}


def get_artifact_pipeline() -> CacheOrGeneratePipeline:
    """Dependency that provides the process-wide pipeline.

    Override this dependency in tests via app.dependency_overrides.
    """
    return get_pipeline()


@router.post("/{feature}", response_model=ObtainArtifactResponse)
async def obtain_artifact(
    feature: str,
    body: ObtainArtifactRequest,
    user: AuthenticatedUser = Depends(require_auth),
    pipeline: CacheOrGeneratePipeline = Depends(get_artifact_pipeline),
):
    """Return today's (or this request's) artifact for ``feature``, generating it if needed.

    Returns:
        200 with the artifact and ``from_cache`` when allowed
        403 with ``tier``, ``upgrade_required`` and ``required_tier`` when the plan lacks the feature
        401/5xx with ``error_kind`` on failure
    """
    result = await pipeline.obtain_artifact(
        user_id=user.user_id,
        feature=feature,
        inputs=body.inputs,
        cached_artifact=body.cached_artifact,
        request_token=body.request_token,
    )
    response = ObtainArtifactResponse.from_result(result)

    if result.status == ObtainStatus.ALLOWED:
        return response

    if result.status == ObtainStatus.DENIED:
        status_code = 403
    else:
        status_code = FAILURE_STATUS_CODES.get(result.error_kind, 500)

    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
