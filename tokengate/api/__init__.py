"""tokengate API routers."""

from fastapi import APIRouter

from tokengate.api import auth, health, home

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(home.router)

__all__ = ["api_router"]
