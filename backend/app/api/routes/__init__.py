from fastapi import APIRouter

from app.api.routes import artifacts, entitlements, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(artifacts.router, prefix="/artifacts", tags=["artifacts"])
api_router.include_router(entitlements.router, prefix="/entitlements", tags=["entitlements"])
