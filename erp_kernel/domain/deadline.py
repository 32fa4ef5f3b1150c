"""Deadline -- caller-supplied cut-off checked before a unit of work commits."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from erp_kernel.domain.clock import Clock
from erp_kernel.exceptions import DeadlineExceededError


@dataclass(frozen=True)
class Deadline:
    """
    Absolute point in time after which an operation must not write.

    Checked immediately before commit: an operation either commits
    entirely or fails with DeadlineExceededError, never mid-transition.
    """

    expires_at: datetime
    clock: Clock

    @classmethod
    def after(cls, clock: Clock, seconds: float) -> "Deadline":
        return cls(expires_at=clock.now() + timedelta(seconds=seconds), clock=clock)

    @property
    def expired(self) -> bool:
        return self.clock.now() >= self.expires_at

    def check(self, operation: str) -> None:
        """Raise DeadlineExceededError if the deadline has passed."""
        if self.expired:
            raise DeadlineExceededError(operation)
