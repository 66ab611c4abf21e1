"""
Celery Beat tasks: scheduled retention cleanup.
"""
from a11y_api.features.scan.services.cleanup.cleanup_service import CleanupService
from a11y_api.platform.celery_app import CLEANUP_TASK, celery_app
from a11y_api.platform.config import settings
from a11y_api.platform.logger import get_logger

logger = get_logger(__name__)



@celery_app.task(bind=True, name=CLEANUP_TASK)
def run_scheduled_cleanup(self):
    """Run one retention pass on the configured schedule."""
    from a11y_api.platform.db.session import SessionLocal

    service = CleanupService.from_settings(SessionLocal, settings)
    if not service.enabled:
        logger.info("Scheduled cleanup is disabled, skipping")
        return None

    logger.info(f"Starting scheduled cleanup (retention {service.retention_days} days)")
    result = service.run_cleanup()
    return result.model_dump()
