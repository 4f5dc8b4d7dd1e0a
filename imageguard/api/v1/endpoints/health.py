"""
Simple health check endpoint.
"""
from typing import Dict, Any, Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, text

from imageguard.core.config import Settings, get_settings
from imageguard.core.database import get_session
from imageguard.core.logging_config import log_error
from imageguard.core.time_utils import utc_now

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=Dict[str, Any],
    responses={
        500: {"description": "Internal server error"},
    }
)
def health_check(
    session: Annotated[Session, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Service health with database status.

    Returns degraded status if the database is unreachable but the service is running.
    """
    try:
        db_status = "connected"
        try:
            session.exec(text("SELECT 1")).first()
        except Exception as e:
            db_status = f"disconnected: {str(e)}"

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "timestamp": utc_now().isoformat(),
            "service": settings.app_name,
            "version": settings.app_version,
            "database": db_status,
            "images_dir_available": settings.images_path.is_dir(),
        }
    except Exception as e:
        log_error(e, request_id=None)
        raise HTTPException(status_code=500, detail="Health check failed")
