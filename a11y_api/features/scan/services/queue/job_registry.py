"""
Redis-backed record of scan jobs for status monitoring.

Celery owns delivery; this registry only mirrors each job's state so the
API can report waiting/active/completed/failed counts. Terminal jobs are
kept in capped lists and the oldest records are pruned as new ones arrive.
"""
import logging
from typing import Dict

import redis

from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.platform.db.base import utcnow

logger = logging.getLogger(__name__)


class JobRegistry:
    def __init__(self, client: "redis.Redis", prefix: str = "scan-processing", keep_completed: int = 10, keep_failed: int = 5):
        self.client = client
        self.prefix = prefix
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed

    @classmethod
    def from_settings(cls, settings) -> "JobRegistry":
        client = redis.Redis.from_url(settings.registry_redis_url, decode_responses=True)
        return cls(
            client,
            prefix=settings.QUEUE_NAME,
            keep_completed=settings.QUEUE_KEEP_COMPLETED,
            keep_failed=settings.QUEUE_KEEP_FAILED,
        )

    # ── keys ─────────────────────────────────────
    def _job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    @property
    def waiting_key(self) -> str:
        return f"{self.prefix}:waiting"

    @property
    def active_key(self) -> str:
        return f"{self.prefix}:active"

    @property
    def completed_key(self) -> str:
        return f"{self.prefix}:completed"

    @property
    def failed_key(self) -> str:
        return f"{self.prefix}:failed"

    # ── state changes ────────────────────────────
    def record_waiting(self, job_id: str, job: ScanJob, delay: float = 0) -> None:
        pipe = self.client.pipeline()
        pipe.hset(self._job_key(job_id), mapping={
            "payload": job.model_dump_json(),
            "state": "waiting",
            "attempts": 0,
            "next_delay": delay,
            "updated_at": utcnow().isoformat(),
        })
        pipe.sadd(self.waiting_key, job_id)
        pipe.execute()

    def record_active(self, job_id: str, attempt: int) -> None:
        pipe = self.client.pipeline()
        pipe.srem(self.waiting_key, job_id)
        pipe.sadd(self.active_key, job_id)
        pipe.hset(self._job_key(job_id), mapping={
            "state": "active",
            "attempts": attempt,
            "updated_at": utcnow().isoformat(),
        })
        pipe.execute()

    def record_retry(self, job_id: str, attempt: int, delay: float, error: str) -> None:
        pipe = self.client.pipeline()
        pipe.srem(self.active_key, job_id)
        pipe.sadd(self.waiting_key, job_id)
        pipe.hset(self._job_key(job_id), mapping={
            "state": "waiting",
            "attempts": attempt,
            "next_delay": delay,
            "last_error": error,
            "updated_at": utcnow().isoformat(),
        })
        pipe.execute()

    def record_completed(self, job_id: str) -> None:
        self._record_terminal(job_id, "completed", self.completed_key, self.keep_completed)

    def record_failed(self, job_id: str, error: str) -> None:
        self._record_terminal(job_id, "failed", self.failed_key, self.keep_failed, last_error=error)

    def _record_terminal(self, job_id: str, state: str, list_key: str, keep: int, **extra) -> None:
        pipe = self.client.pipeline()
        pipe.srem(self.waiting_key, job_id)
        pipe.srem(self.active_key, job_id)
        pipe.hset(self._job_key(job_id), mapping={
            "state": state,
            "updated_at": utcnow().isoformat(),
            **extra,
        })
        pipe.lpush(list_key, job_id)
        pipe.execute()
        self._prune(list_key, keep)

    def _prune(self, list_key: str, keep: int) -> None:
        stale = self.client.lrange(list_key, keep, -1)
        if not stale:
            return

        pipe = self.client.pipeline()
        for job_id in stale:
            pipe.delete(self._job_key(job_id))
        if keep > 0:
            pipe.ltrim(list_key, 0, keep - 1)
        else:
            pipe.delete(list_key)
        pipe.execute()
        logger.debug(f"Pruned {len(stale)} job records from {list_key}")

    # ── queries ──────────────────────────────────
    def counts(self) -> Dict[str, int]:
        pipe = self.client.pipeline()
        pipe.scard(self.waiting_key)
        pipe.scard(self.active_key)
        pipe.llen(self.completed_key)
        pipe.llen(self.failed_key)
        waiting, active, completed, failed = pipe.execute()
        return {
            "waiting": int(waiting),
            "active": int(active),
            "completed": int(completed),
            "failed": int(failed),
        }
