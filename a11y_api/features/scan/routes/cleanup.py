from fastapi import APIRouter, Depends, status

from a11y_api.features.scan.routes.dependencies import get_cleanup_service
from a11y_api.features.scan.schemas.scan import CleanupConfigResponse, CleanupResultResponse
from a11y_api.features.scan.services.cleanup.cleanup_service import CleanupService
from a11y_api.platform.logger import get_logger
from a11y_api.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/cleanup", tags=["admin"])


@router.post("/trigger")
def trigger_cleanup(service: CleanupService = Depends(get_cleanup_service)):
    """Run a retention pass now, regardless of the schedule or the enabled flag."""
    logger.info("Manual cleanup triggered")
    result = service.run_cleanup()
    return api_response(
        data=CleanupResultResponse(**result.model_dump()).model_dump(),
        message="Cleanup completed",
        status_code=status.HTTP_200_OK,
    )


@router.get("/config")
def cleanup_config(service: CleanupService = Depends(get_cleanup_service)):
    return api_response(
        data=CleanupConfigResponse(**service.get_config()).model_dump(),
        message="Cleanup configuration",
        status_code=status.HTTP_200_OK,
    )
