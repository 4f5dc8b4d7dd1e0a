"""
API v1 router.
"""
from fastapi import APIRouter

from imageguard.api.v1.endpoints import health, image_health

api_router = APIRouter()

api_router.include_router(image_health.router, prefix="/admin/image-health", tags=["image-health"])
api_router.include_router(health.router, tags=["health"])
