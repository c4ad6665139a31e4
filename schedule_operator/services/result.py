"""Outcome of one reconcile cycle, consumed by the work queue"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ReconcileResult:
    """
    requeue_after set: re-check after that many seconds (also on failure).
    requeue set: re-check immediately.
    error without requeue_after: retry with the queue's backoff.
    Nothing set: done until the next watch event.
    """
    requeue: bool = False
    requeue_after: Optional[float] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
