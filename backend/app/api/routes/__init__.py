"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .instances import router as instances_router

# Main API router
api_router = APIRouter()

api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(instances_router, prefix="/instances", tags=["Instances"])

__all__ = ["api_router"]
