"""Configuration for retry logic.

Two policies are used by azspeech:
- resource_group_poll: waiting for a newly created resource group to become
  visible (fixed 5 attempts, 3 seconds apart)
- api: transient failures of management API read calls (throttling,
  gateway errors), exponential backoff

Design Philosophy:
- Policies are plain value objects so tests can use zero delays
- Sensible defaults: Works out of the box
- Environment-aware: Can be overridden via env vars
"""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy value object.

    Attributes:
        max_attempts: Total number of attempts (>= 1)
        delay: Delay before the second attempt, in seconds
        backoff: Multiplier applied to the delay after every attempt
            (1.0 means a fixed delay)
        max_delay: Upper bound for a single delay
    """

    max_attempts: int = 5
    delay: float = 3.0
    backoff: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")
        if self.backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {self.backoff}")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)


@dataclass
class RetryConfig:
    """Retry configuration settings used across azspeech operations."""

    resource_group_poll: RetryPolicy = field(default_factory=RetryPolicy)
    api: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, delay=1.0, backoff=2.0)
    )

    @classmethod
    def from_environment(cls) -> "RetryConfig":
        """Load retry configuration from environment variables.

        Environment variables (all optional):
            AZSPEECH_RG_POLL_ATTEMPTS: Resource group poll attempts (default: 5)
            AZSPEECH_RG_POLL_DELAY: Seconds between polls (default: 3.0)
            AZSPEECH_API_MAX_ATTEMPTS: Attempts for read calls (default: 3)
            AZSPEECH_API_INITIAL_DELAY: First backoff delay (default: 1.0)

        Returns:
            RetryConfig with values from environment or defaults
        """
        return cls(
            resource_group_poll=RetryPolicy(
                max_attempts=int(os.getenv("AZSPEECH_RG_POLL_ATTEMPTS", "5")),
                delay=float(os.getenv("AZSPEECH_RG_POLL_DELAY", "3.0")),
                backoff=1.0,
            ),
            api=RetryPolicy(
                max_attempts=int(os.getenv("AZSPEECH_API_MAX_ATTEMPTS", "3")),
                delay=float(os.getenv("AZSPEECH_API_INITIAL_DELAY", "1.0")),
                backoff=2.0,
            ),
        )


# Global configuration instance (lazily loaded)
_config: RetryConfig | None = None


def get_retry_config() -> RetryConfig:
    """Get global retry configuration (loaded from environment on first access)."""
    global _config
    if _config is None:
        _config = RetryConfig.from_environment()
    return _config


def reset_retry_config() -> None:
    """Reset global retry configuration.

    Forces reload from environment on next access.
    """
    global _config
    _config = None


__all__ = ["RetryConfig", "RetryPolicy", "get_retry_config", "reset_retry_config"]
