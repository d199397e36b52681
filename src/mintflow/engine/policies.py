"""
Timing policies for the mint workflow.

Grace periods, fallback delays, retry backoff and watch windows are grouped
into named policy objects injected into the watcher, the allowance
synchronizer and the orchestrator instead of being inlined as timers.
"""

from pydantic import BaseModel, Field


class SyncPolicy(BaseModel):
    """
    Bounded read-after-write policy for the allowance synchronizer.

    Attributes:
        grace_period: Seconds to wait after approval confirmation before the first read
        fallback_delay: Seconds to wait before each fallback re-read
        max_fallback_attempts: Fallback re-reads after the first read
    """
    grace_period: float = Field(default=4.0, ge=0)
    fallback_delay: float = Field(default=2.0, ge=0)
    max_fallback_attempts: int = Field(default=1, ge=0)


class RetryPolicy(BaseModel):
    """Automatic retry of a mint that reverted on an allowance race."""
    race_backoff: float = Field(default=3.0, ge=0)
    max_race_retries: int = Field(default=1, ge=0, le=1)


class WatchPolicy(BaseModel):
    """Receipt polling window for the confirmation watcher."""
    poll_interval: float = Field(default=2.0, gt=0)
    timeout: float = Field(default=120.0, gt=0)
