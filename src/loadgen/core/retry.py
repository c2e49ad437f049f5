"""Backoff policy for retried inference dispatches."""
import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with optional jitter."""
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError("max_attempts cannot be negative")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays cannot be negative")

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt is allowed after `attempt` retries."""
        return attempt < self.max_attempts

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number `attempt` (0-based)."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)

        # Up to 50% jitter so retried dispatches do not line up
        if self.jitter:
            delay += random.uniform(0, delay * 0.5)

        return delay
