import logging
from typing import Dict

import redis
from uuid_extension import uuid7

from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.features.scan.services.queue.job_registry import JobRegistry

logger = logging.getLogger(__name__)


class ScanQueue:
    """
    Producer/consumer facade over the Celery scan queue.

    enqueue() delays visibility slightly so the worker never reads a Scan row
    before the creating transaction is durable. The worker reports ack,
    retry and fail back through this object so the registry stays current.
    """

    def __init__(self, registry: JobRegistry, enqueue_delay: float = 1.0, queue_name: str = "scan-processing"):
        self.registry = registry
        self.enqueue_delay = enqueue_delay
        self.queue_name = queue_name

    @classmethod
    def from_settings(cls, settings) -> "ScanQueue":
        return cls(
            JobRegistry.from_settings(settings),
            enqueue_delay=settings.QUEUE_ENQUEUE_DELAY_SECONDS,
            queue_name=settings.QUEUE_NAME,
        )

    def enqueue(self, job: ScanJob) -> str:
        from a11y_api.features.scan.workers.tasks import process_scan

        job_id = str(uuid7())
        self.registry.record_waiting(job_id, job, delay=self.enqueue_delay)
        try:
            process_scan.apply_async(
                kwargs={"job": job.model_dump(mode="json")},
                task_id=job_id,
                countdown=self.enqueue_delay,
                queue=self.queue_name,
            )
        except Exception as e:
            logger.error(f"[scan {job.scan_id}] Failed to dispatch job {job_id}: {e}")
            try:
                self.registry.record_failed(job_id, f"Dispatch failed: {e}")
            except redis.RedisError as registry_error:
                logger.warning(f"Could not record dispatch failure of job {job_id}: {registry_error}")
            raise
        logger.info(f"[scan {job.scan_id}] Enqueued job {job_id} ({job.scanner_type.value}) for {job.url}")
        return job_id

    def mark_active(self, job_id: str, attempt: int) -> None:
        self.registry.record_active(job_id, attempt)

    def ack(self, job_id: str) -> None:
        self.registry.record_completed(job_id)

    def retry(self, job_id: str, attempt: int, delay: float, error: str) -> None:
        self.registry.record_retry(job_id, attempt, delay, error)

    def fail(self, job_id: str, error: str) -> None:
        self.registry.record_failed(job_id, error)

    def get_status(self) -> Dict[str, int]:
        return self.registry.counts()
