"""API v1 routes."""

from fastapi import APIRouter

from jobboard.api.v1 import auth

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
