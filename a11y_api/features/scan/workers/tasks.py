"""
Celery tasks that consume the scan queue.

Each worker process owns one WorkerRuntime: a shared browser, the scanner
engines and the processor. The runtime is built on the first delivery and
torn down when the worker process exits.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import redis
from celery import Task
from celery.signals import worker_process_shutdown, worker_shutdown

from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.features.scan.services.browser.browser_manager import BrowserManager
from a11y_api.features.scan.services.processor.results import ProcessOutcome, ProcessResult
from a11y_api.features.scan.services.processor.scan_processor import ScanProcessor
from a11y_api.features.scan.services.queue.retry_policy import RetryPolicy
from a11y_api.features.scan.services.queue.scan_queue import ScanQueue
from a11y_api.features.scan.services.scanner.factory import ScannerFactory
from a11y_api.platform.celery_app import PROCESS_SCAN_TASK, celery_app
from a11y_api.platform.config import settings
from a11y_api.platform.logger import get_logger

logger = get_logger(__name__)



class WorkerRuntime:
    def __init__(self, processor: ScanProcessor, queue: ScanQueue, policy: RetryPolicy):
        self.processor = processor
        self.queue = queue
        self.policy = policy

    @classmethod
    def from_settings(cls, settings) -> "WorkerRuntime":
        from a11y_api.platform.db.session import SessionLocal, init_db

        init_db()
        processor = ScanProcessor(
            SessionLocal,
            BrowserManager.from_settings(settings),
            ScannerFactory.from_settings(settings),
            screenshot_dir=settings.screenshot_path,
            scan_timeout=settings.SCAN_TIMEOUT_SECONDS,
            screenshot_timeout=settings.SCREENSHOT_TIMEOUT_SECONDS,
        )
        return cls(processor, ScanQueue.from_settings(settings), RetryPolicy.from_settings(settings))

    def shutdown(self) -> None:
        self.processor.browser_manager.shutdown()


class ScanTask(Task):
    _runtime: Optional[WorkerRuntime] = None

    @property
    def runtime(self) -> WorkerRuntime:
        if ScanTask._runtime is None:
            ScanTask._runtime = WorkerRuntime.from_settings(settings)
        return ScanTask._runtime


@dataclass
class DeliveryDecision:
    action: str  # "ack", "retry" or "fail"
    result: ProcessResult
    delay: float = 0.0

    @property
    def error(self) -> str:
        return str(self.result.error) if self.result.error else ""


def _record(operation, *args) -> None:
    # registry bookkeeping must never decide the fate of a scan
    try:
        operation(*args)
    except redis.RedisError as e:
        logger.warning(f"Job registry update {operation.__name__} failed: {e}")


def handle_delivery(
    processor: ScanProcessor,
    queue: ScanQueue,
    policy: RetryPolicy,
    job: ScanJob,
    job_id: str,
    attempt: int,
) -> DeliveryDecision:
    """Run one attempt and turn its ProcessResult into ack, retry or fail."""
    _record(queue.mark_active, job_id, attempt)

    try:
        result = processor.process(job, attempt=attempt)
    except Exception as e:
        logger.exception(f"[scan {job.scan_id}] Unexpected error in attempt {attempt}: {e}")
        result = ProcessResult(ProcessOutcome.retryable, job.scan_id, error=e)

    if result.succeeded:
        _record(queue.ack, job_id)
        return DeliveryDecision("ack", result)

    if policy.should_retry(attempt, result.outcome):
        delay = policy.delay_for(attempt)
        decision = DeliveryDecision("retry", result, delay=delay)
        logger.warning(
            f"[scan {job.scan_id}] Attempt {attempt}/{policy.max_attempts} failed, retrying in {delay:g}s: {decision.error}"
        )
        _record(queue.retry, job_id, attempt, delay, decision.error)
        return decision

    decision = DeliveryDecision("fail", result)
    logger.error(
        f"[scan {job.scan_id}] Job {job_id} failed permanently after attempt {attempt} "
        f"({result.outcome.value}): {decision.error}"
    )
    _record(queue.fail, job_id, decision.error)
    return decision


@celery_app.task(
    bind=True,
    base=ScanTask,
    name=PROCESS_SCAN_TASK,
    max_retries=None,
    acks_late=True,
)
def process_scan(self, job: Dict[str, Any]) -> Dict[str, Any]:
    """
    Process one scan job delivery.

    Celery's own retry counter only tracks attempts; RetryPolicy decides
    whether another one happens and how long to wait before it.
    """
    scan_job = ScanJob.model_validate(job)
    attempt = self.request.retries + 1
    runtime = self.runtime

    decision = handle_delivery(
        runtime.processor,
        runtime.queue,
        runtime.policy,
        scan_job,
        job_id=self.request.id,
        attempt=attempt,
    )

    if decision.action == "retry":
        raise self.retry(countdown=decision.delay, exc=decision.result.error)
    if decision.action == "fail":
        raise decision.result.error

    summary = decision.result.summary
    return {
        "scan_id": scan_job.scan_id,
        "status": "completed",
        "issues_saved": summary.saved if summary else 0,
        "attempt": attempt,
    }


@worker_process_shutdown.connect
@worker_shutdown.connect
def shutdown_browser(**kwargs):
    runtime = ScanTask._runtime
    if runtime is None:
        return
    ScanTask._runtime = None
    logger.info("Worker shutting down, closing browser")
    runtime.shutdown()
