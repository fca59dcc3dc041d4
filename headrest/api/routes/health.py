"""
Health API Routes
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from headrest.config import Settings, get_settings
from headrest.database import check_database_connection, database_health

router = APIRouter()


@router.get("/health")
async def health_check() -> JSONResponse:
    """Application and database health"""
    db = database_health()
    ok = bool(db.get("ok")) and check_database_connection()
    return JSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if ok else "degraded",
            "database": db,
        },
    )


@router.get("/health/config")
async def check_config(settings: Settings = Depends(get_settings)) -> dict:
    """Report which required settings are missing or still placeholders."""
    missing = settings.missing_settings()
    placeholders = settings.placeholder_settings()
    return {
        "environment": settings.app_env,
        "ready": not missing and not placeholders,
        "missing": missing,
        "placeholders": placeholders,
    }
