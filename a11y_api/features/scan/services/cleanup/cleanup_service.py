"""
Retention cleanup for scans and screenshot files.

Two independent passes, both safe to re-run:
1. Database: delete scans created before the cutoff in fixed-size batches
   of ids; issues go with them through ON DELETE CASCADE.
2. Files: list the screenshot directory in batches, ask the database which
   names are still referenced, delete the rest with bounded concurrency.

No lock is taken. Scans that are pending or running are always newer than
the cutoff, so they never fall into the selection window.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from a11y_api.features.scan.models.issue import Issue
from a11y_api.features.scan.models.scan import Scan
from a11y_api.platform.db.base import utcnow

logger = logging.getLogger(__name__)

SCREENSHOT_SUFFIX = ".png"


class CleanupResult(BaseModel):
    scans_removed: int = 0
    issues_removed: int = 0
    files_removed: int = 0
    orphaned_files: int = 0


class CleanupService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        screenshot_dir: Path,
        retention_days: int = 30,
        batch_size: int = 1000,
        concurrency_limit: int = 10,
        batch_pause: float = 0.05,
        enabled: bool = True,
        interval: str = "0 2 * * *",
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.screenshot_dir = Path(screenshot_dir)
        self.retention_days = retention_days
        self.batch_size = batch_size
        self.concurrency_limit = concurrency_limit
        self.batch_pause = batch_pause
        self.enabled = enabled
        self.interval = interval
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(cls, session_factory, settings) -> "CleanupService":
        return cls(
            session_factory,
            screenshot_dir=settings.screenshot_path,
            retention_days=settings.CLEANUP_RETENTION_DAYS,
            batch_size=settings.CLEANUP_BATCH_SIZE,
            concurrency_limit=settings.CLEANUP_CONCURRENCY_LIMIT,
            batch_pause=settings.CLEANUP_BATCH_PAUSE_SECONDS,
            enabled=settings.CLEANUP_ENABLED,
            interval=settings.CLEANUP_INTERVAL,
        )

    def get_config(self) -> dict:
        return {
            "enabled": self.enabled,
            "retention_days": self.retention_days,
            "screenshot_dir": str(self.screenshot_dir),
            "interval": self.interval,
            "batch_size": self.batch_size,
            "concurrency_limit": self.concurrency_limit,
        }

    def compute_cutoff(self, now: Optional[datetime] = None) -> datetime:
        now = now or self._clock()
        if self.retention_days == 0:
            # test mode: every existing scan is eligible
            return now + timedelta(minutes=1)
        return now - timedelta(days=self.retention_days)

    def run_cleanup(self) -> CleanupResult:
        started = time.monotonic()
        cutoff = self.compute_cutoff()
        if self.retention_days == 0:
            logger.info("Retention is 0 days: cutoff set 1 minute in the future")
        logger.info(f"Cleaning up scans created before {cutoff.isoformat()}")

        try:
            scans_removed, issues_removed = self.cleanup_database(cutoff)
            files_removed, orphaned_files = self.cleanup_screenshot_files()
        except Exception as e:
            logger.error(f"Cleanup run failed: {e}")
            raise

        result = CleanupResult(
            scans_removed=scans_removed,
            issues_removed=issues_removed,
            files_removed=files_removed,
            orphaned_files=orphaned_files,
        )
        logger.info(
            f"Cleanup completed in {(time.monotonic() - started) * 1000:.0f}ms: "
            f"{result.scans_removed} scans, {result.issues_removed} issues, "
            f"{result.files_removed}/{result.orphaned_files} orphaned screenshots removed"
        )
        return result

    # ── database pass ────────────────────────────
    def cleanup_database(self, cutoff: datetime) -> Tuple[int, int]:
        db = self.session_factory()
        try:
            scan_count = db.scalar(
                select(func.count()).select_from(Scan).where(Scan.created_at < cutoff)
            ) or 0
            if scan_count == 0:
                logger.info("No scans found for cleanup")
                return 0, 0

            issue_count = db.scalar(
                select(func.count(Issue.id))
                .join(Scan, Issue.scan_id == Scan.id)
                .where(Scan.created_at < cutoff)
            ) or 0
            logger.info(f"Found {scan_count} scans with {issue_count} issues for cleanup")

            total_batches = -(-scan_count // self.batch_size)
            scans_removed = 0
            batch_number = 0
            while scans_removed < scan_count:
                batch_number += 1
                scan_ids = db.scalars(
                    select(Scan.id)
                    .where(Scan.created_at < cutoff)
                    .order_by(Scan.id)
                    .limit(self.batch_size)
                ).all()
                if not scan_ids:
                    break

                result = db.execute(
                    delete(Scan).where(Scan.id.in_(scan_ids)),
                    execution_options={"synchronize_session": False},
                )
                db.commit()
                deleted = result.rowcount or 0
                scans_removed += deleted
                logger.info(f"Batch {batch_number}/{total_batches}: deleted {deleted} scans")

                if scans_removed < scan_count:
                    self._sleep(self.batch_pause)

            return scans_removed, issue_count
        finally:
            db.close()

    # ── file pass ────────────────────────────────
    def list_screenshot_files(self) -> List[str]:
        if not self.screenshot_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.screenshot_dir.iterdir()
            if entry.is_file() and entry.suffix == SCREENSHOT_SUFFIX
        )

    def cleanup_screenshot_files(self) -> Tuple[int, int]:
        if not self.screenshot_dir.is_dir():
            logger.info("Screenshot directory does not exist, skipping file cleanup")
            return 0, 0

        filenames = self.list_screenshot_files()
        if not filenames:
            logger.info("No screenshot files found on disk")
            return 0, 0

        logger.info(f"Found {len(filenames)} screenshot files on disk")
        total_batches = -(-len(filenames) // self.batch_size)
        files_removed = 0
        orphaned_files = 0

        for start in range(0, len(filenames), self.batch_size):
            batch = filenames[start:start + self.batch_size]
            batch_number = start // self.batch_size + 1

            orphaned = self.find_orphaned(batch)
            orphaned_files += len(orphaned)
            if orphaned:
                removed = self.remove_files(orphaned)
                files_removed += removed
                logger.info(
                    f"Batch {batch_number}/{total_batches}: removed {removed} of {len(orphaned)} orphaned files"
                )
            else:
                logger.debug(f"Batch {batch_number}/{total_batches}: no orphaned files")

            if batch_number < total_batches:
                self._sleep(self.batch_pause * 2)

        return files_removed, orphaned_files

    def find_orphaned(self, filenames: List[str]) -> List[str]:
        db = self.session_factory()
        try:
            referenced = set(
                db.scalars(
                    select(Issue.screenshot_filename)
                    .where(Issue.screenshot_filename.in_(filenames))
                    .distinct()
                ).all()
            )
        finally:
            db.close()
        return [name for name in filenames if name not in referenced]

    def remove_files(self, filenames: List[str]) -> int:
        if not filenames:
            return 0
        workers = min(self.concurrency_limit, len(filenames))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="screenshot-cleanup") as pool:
            results = list(pool.map(self._remove_file, filenames))
        return sum(1 for removed in results if removed)

    def _remove_file(self, filename: str) -> bool:
        try:
            (self.screenshot_dir / filename).unlink()
        except OSError as e:
            logger.warning(f"Failed to remove screenshot file {filename}: {e}")
            return False
        logger.debug(f"Removed orphaned screenshot: {filename}")
        return True
