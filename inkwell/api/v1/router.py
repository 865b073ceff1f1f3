"""API v1 router configuration."""

from fastapi import APIRouter

from inkwell.api.v1.endpoints import admin, articles, auth, health, users

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(articles.router, tags=["Articles"])
api_router.include_router(admin.router, tags=["Admin"])
