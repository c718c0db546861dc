"""API-specific test fixtures.

Routes run in-process through httpx.ASGITransport so they share the
pytest-asyncio event loop with fakeredis and the pipeline fixtures.
"""

import httpx
import pytest
from fastapi import FastAPI

from app.api.routes import api_router
from app.api.routes.artifacts import get_artifact_pipeline
from app.core.auth import AuthenticatedUser, require_auth


def override_auth(user: AuthenticatedUser):
    """Create auth override for a specific user."""

    async def _override():
        return user

    return _override


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline(strict=False)


@pytest.fixture
def api_app(pipeline) -> FastAPI:
    """Bare app with the API router; the pipeline is swapped for the test one."""
    app = FastAPI()
    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_artifact_pipeline] = lambda: pipeline
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(api_app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=api_app), base_url="http://test") as c:
        yield c


@pytest.fixture
def login(api_app):
    """Authenticate subsequent requests as ``user_id``."""

    def _login(user_id: str) -> None:
        user = AuthenticatedUser(user_id=user_id, claims={"sub": user_id})
        api_app.dependency_overrides[require_auth] = override_auth(user)

    return _login
