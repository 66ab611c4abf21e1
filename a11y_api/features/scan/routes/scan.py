from fastapi import APIRouter, Depends, Query, status

from a11y_api.features.scan.routes.dependencies import get_scan_queue, get_scan_service
from a11y_api.features.scan.schemas.scan import CreateScanRequest, QueueStatusResponse
from a11y_api.features.scan.services.queue.scan_queue import ScanQueue
from a11y_api.features.scan.services.scan.scan import ScanService
from a11y_api.platform.logger import get_logger
from a11y_api.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/scans", tags=["scans"])
queue_router = APIRouter(prefix="/queue", tags=["queue"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_scan(
    payload: CreateScanRequest,
    service: ScanService = Depends(get_scan_service),
):
    """
    Create a scan and queue it for processing.

    Returns immediately with status `pending`; poll GET /scans/{id} for the result.
    """
    scan = service.create(payload)
    return api_response(
        data=scan,
        message="Scan queued",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("")
def list_scans(service: ScanService = Depends(get_scan_service)):
    scans = service.find_all()
    return api_response(
        data=scans,
        message=f"Found {len(scans)} scans",
        status_code=status.HTTP_200_OK,
    )


@router.get("/by-url")
def list_scans_by_url(
    url: str = Query(..., min_length=1),
    service: ScanService = Depends(get_scan_service),
):
    scans = service.find_by_url(url)
    return api_response(
        data=scans,
        message=f"Found {len(scans)} scans for {url}",
        status_code=status.HTTP_200_OK,
    )


@router.get("/{scan_id}")
def get_scan(scan_id: int, service: ScanService = Depends(get_scan_service)):
    scan = service.find_one(scan_id)
    return api_response(
        data=scan,
        message="Scan retrieved",
        status_code=status.HTTP_200_OK,
    )


@router.delete("/{scan_id}")
def delete_scan(scan_id: int, service: ScanService = Depends(get_scan_service)):
    service.remove(scan_id)
    return api_response(
        data={"id": scan_id},
        message="Scan deleted",
        status_code=status.HTTP_200_OK,
    )


@queue_router.get("/status")
def queue_status(queue: ScanQueue = Depends(get_scan_queue)):
    counts = QueueStatusResponse(**queue.get_status())
    return api_response(
        data=counts.model_dump(),
        message="Queue status",
        status_code=status.HTTP_200_OK,
    )
