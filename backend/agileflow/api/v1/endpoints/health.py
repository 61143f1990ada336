from datetime import datetime
from fastapi import APIRouter

from agileflow.core.config import settings


router = APIRouter()


@router.get("/health", tags=["Health"])
async def health_check():
    """Liveness check"""
    return {
        "status": "ok",
        "app_name": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat(),
    }
