"""
Retry policy shared by every reconnect path.

A single [RetryPolicy][wotgraph.core.retry.RetryPolicy] instance is owned by
the relay pool and consulted wherever the engine waits before trying relays
again, so attempt counts and delays are configured in one place.

The default is three attempts two seconds apart (linear). Exponential
backoff is available for deployments that share relays with many clients.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class RetryPolicy(BaseModel):
    """Bounded retry schedule.

    Attributes:
        max_attempts: Total attempts before giving up (first try included).
        delay: Wait after the first failed attempt, in seconds.
        max_delay: Upper bound on any single wait.
        exponential_backoff: Double the wait after each failure instead of
            keeping it constant.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts")
    delay: float = Field(default=2.0, ge=0.0, description="Base delay between attempts")
    max_delay: float = Field(default=30.0, ge=0.0, description="Maximum delay between attempts")
    exponential_backoff: bool = Field(default=False, description="Use exponential backoff")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        """Ensure max_delay >= delay."""
        delay = info.data.get("delay", 2.0)
        if v < delay:
            raise ValueError(f"max_delay ({v}) must be >= delay ({delay})")
        return v

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed."""
        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        if self.exponential_backoff:
            return min(self.delay * (2**attempt), self.max_delay)
        return min(self.delay, self.max_delay)

    def is_last(self, attempt: int) -> bool:
        """Whether the zero-based ``attempt`` is the final one allowed."""
        return attempt + 1 >= self.max_attempts
