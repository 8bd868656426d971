"""Version 1 API routers."""

from fastapi import APIRouter

from . import auth, registration

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(registration.router)

__all__ = ["api_router"]
