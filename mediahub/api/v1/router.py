"""API v1 router aggregation."""

from fastapi import APIRouter

from mediahub.api.v1 import auth, uploads

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
