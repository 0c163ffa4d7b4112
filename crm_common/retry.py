"""
Retry policy for the request layer.

The budget counts retries, not attempts: ``max_retries=2`` allows three
transport attempts in total. Delays between attempts default to zero.
"""

import random
from typing import Optional, TYPE_CHECKING

from crm_common.errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from crm_common.config import ApiSettings


BACKOFF_STRATEGIES = ("none", "fixed", "linear", "exponential")


class RetryPolicy:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_retries: int = 0,
                 backoff_strategy: str = "none",
                 base_delay: float = 0.5,
                 max_delay: float = 10.0,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 retry_unauthorized: bool = False):
        if max_retries < 0:
            raise ConfigurationError(
                "max_retries must be non-negative",
                details={"max_retries": max_retries}
            )
        if backoff_strategy not in BACKOFF_STRATEGIES:
            raise ConfigurationError(
                f"Unknown backoff strategy: {backoff_strategy}",
                details={"allowed": list(BACKOFF_STRATEGIES)}
            )
        self.max_retries = max_retries
        self.backoff_strategy = backoff_strategy
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retry_unauthorized = retry_unauthorized

    @classmethod
    def from_settings(cls, settings: "ApiSettings") -> "RetryPolicy":
        return cls(
            max_retries=settings.api_max_retries,
            backoff_strategy=settings.api_retry_backoff,
            base_delay=settings.api_retry_base_delay,
            max_delay=settings.api_retry_max_delay,
            jitter=settings.api_retry_jitter,
            retry_unauthorized=settings.api_retry_unauthorized,
        )

    def delay_for(self, retry_number: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to wait before retry ``retry_number`` (1-based)."""
        return calculate_delay(retry_number, self, rng)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, "
            f"backoff_strategy={self.backoff_strategy!r})"
        )


def calculate_delay(retry_number: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Calculate delay between retry attempts."""
    if policy.backoff_strategy == "none":
        return 0.0

    if policy.backoff_strategy == "exponential":
        delay = policy.base_delay * (policy.exponential_base ** (retry_number - 1))
    elif policy.backoff_strategy == "linear":
        delay = policy.base_delay * retry_number
    else:
        delay = policy.base_delay

    delay = min(delay, policy.max_delay)

    if policy.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += (rng or random).uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
