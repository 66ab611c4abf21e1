"""
Explicit outcomes of one scan attempt, consumed by the queue's retry policy.
"""
import enum
from dataclasses import dataclass, field
from typing import List, Optional

from a11y_api.platform.exceptions import EngineContractError, ScanError, ScanNotFoundError


class ProcessOutcome(str, enum.Enum):
    succeeded = "succeeded"
    retryable = "retryable"
    fatal = "fatal"


@dataclass
class IssueWriteFailure:
    rule_id: str
    error: str


@dataclass
class PersistenceSummary:
    attempted: int = 0
    saved: int = 0
    failures: List[IssueWriteFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def is_partial(self) -> bool:
        return self.saved > 0 and self.failed > 0


class IssuePersistenceError(ScanError):
    def __init__(self, summary: PersistenceSummary):
        self.summary = summary
        super().__init__(
            f"Saved {summary.saved} of {summary.attempted} issues, {summary.failed} writes failed"
        )


@dataclass
class ProcessResult:
    outcome: ProcessOutcome
    scan_id: int
    summary: Optional[PersistenceSummary] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ProcessOutcome.succeeded


def classify_failure(exc: BaseException) -> ProcessOutcome:
    """Contract violations and vanished scans cannot be fixed by retrying."""
    if isinstance(exc, (EngineContractError, ScanNotFoundError)):
        return ProcessOutcome.fatal
    return ProcessOutcome.retryable
