from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from a11y_api.features.scan.services.cleanup.cleanup_service import CleanupService
from a11y_api.features.scan.services.queue.scan_queue import ScanQueue
from a11y_api.features.scan.services.rules.factory import RuleServiceFactory
from a11y_api.features.scan.services.scan.scan import ScanService
from a11y_api.platform.config import settings
from a11y_api.platform.db.session import SessionLocal, get_db


@lru_cache
def get_scan_queue() -> ScanQueue:
    return ScanQueue.from_settings(settings)


@lru_cache
def get_rule_factory() -> RuleServiceFactory:
    return RuleServiceFactory.from_settings(settings)


def get_cleanup_service() -> CleanupService:
    return CleanupService.from_settings(SessionLocal, settings)


def get_scan_service(
    request: Request,
    db: Session = Depends(get_db),
    queue: ScanQueue = Depends(get_scan_queue),
    rule_factory: RuleServiceFactory = Depends(get_rule_factory),
) -> ScanService:
    base_url = settings.BASE_URL or str(request.base_url)
    return ScanService(db, queue, rule_factory, base_url=base_url)
