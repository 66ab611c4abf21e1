from dataclasses import dataclass

from a11y_api.features.scan.services.processor.results import ProcessOutcome


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with exponential backoff; attempts are 1-based."""
    max_attempts: int = 3
    base_delay: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.QUEUE_MAX_ATTEMPTS,
            base_delay=settings.QUEUE_BACKOFF_BASE_SECONDS,
        )

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** (max(attempt, 1) - 1))

    def should_retry(self, attempt: int, outcome: ProcessOutcome) -> bool:
        return outcome is ProcessOutcome.retryable and attempt < self.max_attempts
