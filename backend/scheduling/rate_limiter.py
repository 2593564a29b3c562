"""Rate limiting for scheduled digest runs."""

import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta

from shared.errors import RateLimitError
from shared.utils import ensure_utc


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits applied to each schedule before a run starts."""

    max_executions_per_window: int
    max_recipients_per_run: int
    window_seconds: int = 3600


class ExecutionRateLimiter:
    """
    Sliding-window limiter keyed by schedule id.

    check() raises before anything is sent; record() is called once a run
    has actually been attempted so rejected runs do not consume the window.
    """

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._history: dict[str, deque[datetime]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, schedule_id: str, recipient_count: int, now: datetime) -> None:
        """
        Raises:
            RateLimitError: If the run would exceed either limit
        """
        if recipient_count > self.config.max_recipients_per_run:
            raise RateLimitError(
                f"Recipient limit exceeded: {recipient_count} recipients "
                f"(max {self.config.max_recipients_per_run} per schedule).",
                {"schedule_id": schedule_id, "recipient_count": recipient_count},
            )

        now = ensure_utc(now)
        with self._lock:
            recent = self._prune(schedule_id, now)
            if len(recent) >= self.config.max_executions_per_window:
                raise RateLimitError(
                    f"Execution limit exceeded: {len(recent)} runs in the last "
                    f"{self.config.window_seconds // 60} minutes "
                    f"(max {self.config.max_executions_per_window}).",
                    {"schedule_id": schedule_id, "recent_runs": len(recent)},
                )

    def record(self, schedule_id: str, now: datetime) -> None:
        with self._lock:
            self._history[schedule_id].append(ensure_utc(now))

    def _prune(self, schedule_id: str, now: datetime) -> deque[datetime]:
        window_start = now - timedelta(seconds=self.config.window_seconds)
        recent = self._history[schedule_id]
        while recent and recent[0] <= window_start:
            recent.popleft()
        return recent
