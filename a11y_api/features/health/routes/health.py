from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from a11y_api.platform.config import settings
from a11y_api.platform.db.session import get_db
from a11y_api.platform.logger import get_logger
from a11y_api.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
        database = "unavailable"

    healthy = database == "ok"
    return api_response(
        data={"status": "ok" if healthy else "degraded", "service": settings.APP_NAME, "database": database},
        message="Service is healthy" if healthy else "Service is degraded",
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
