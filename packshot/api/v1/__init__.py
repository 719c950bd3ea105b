"""
API v1 Router Module

All v1 endpoints are prefixed with /api/v1/
"""

from fastapi import APIRouter

from packshot.api.v1.enhance import router as enhance_router
from packshot.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(enhance_router, prefix="/enhance", tags=["pipeline"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
