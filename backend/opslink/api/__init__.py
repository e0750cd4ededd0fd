"""API router aggregator."""
from fastapi import APIRouter

from opslink.api.routes import analytics, auth, messages, oauth, profile, servers, users

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(servers.router)
api_router.include_router(profile.router)
api_router.include_router(messages.router)
api_router.include_router(analytics.router)
api_router.include_router(oauth.router)

__all__ = ["api_router"]
