"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service liveness and basic runtime info."""
    return {
        "status": "healthy",
        "python_version": sys.version,
        "platform": platform.platform(),
    }
