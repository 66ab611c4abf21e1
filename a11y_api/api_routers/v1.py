from fastapi import APIRouter

from a11y_api.features.health.routes.health import router as health_router
from a11y_api.features.scan.routes.cleanup import router as cleanup_router
from a11y_api.features.scan.routes.scan import queue_router
from a11y_api.features.scan.routes.scan import router as scan_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(scan_router)
api_router.include_router(queue_router)
api_router.include_router(cleanup_router)
api_router.include_router(health_router)
