from celery import Celery
from kombu import Queue

from a11y_api.platform.config import settings

CLEANUP_TASK = "a11y_api.features.scan.workers.periodic_tasks.run_scheduled_cleanup"
PROCESS_SCAN_TASK = "a11y_api.features.scan.workers.tasks.process_scan"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - scan-processing: one task per scan job, retried with backoff by the worker
    - celery: periodic maintenance (retention cleanup)

    The broker holds jobs durably; with late acks a worker that dies mid-scan
    leaves its job to be redelivered.
    """
    celery_app = Celery(
        "a11y_scan",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        # Results expire after 1 hour; scan state lives in the database
        result_expires=3600,

        task_routes={
            PROCESS_SCAN_TASK: {"queue": settings.QUEUE_NAME},
            CLEANUP_TASK: {"queue": "celery"},
        },
        task_queues=(
            Queue(settings.QUEUE_NAME),
            Queue("celery"),
        ),
        task_default_queue=settings.QUEUE_NAME,

        # One scan at a time per worker process
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.WORKER_CONCURRENCY,

        task_acks_late=True,
        task_reject_on_worker_lost=True,
        # unacked tasks, including countdown retries, are redelivered after this
        broker_transport_options={"visibility_timeout": settings.CELERY_TASK_TIME_LIMIT * 2},
    )

    if settings.CLEANUP_ENABLED:
        celery_app.conf.beat_schedule = {
            "scan-retention-cleanup": {
                "task": CLEANUP_TASK,
                "schedule": settings.cleanup_schedule,
            },
        }

    celery_app.autodiscover_tasks(["a11y_api.features.scan.workers"])

    return celery_app


celery_app = create_celery_app()
