"""Poll loop that hands due schedules to the execution runner."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime

from models.schedule import Execution
from models.types import ScheduleID
from notifications.error_logger import log_notification_error
from scheduling.execution_runner import ExecutionRunner
from scheduling.schedule_store import ScheduleStore
from shared.utils import ensure_utc, utcnow


class SchedulerLoop:
    """Single-node scheduler driver."""

    def __init__(
        self,
        store: ScheduleStore,
        runner: ExecutionRunner,
        workers: int = 4,
        poll_interval_seconds: float = 60.0,
    ):
        self.store = store
        self.runner = runner
        self.poll_interval_seconds = poll_interval_seconds
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="schedule")

    def tick(self, now: datetime | None = None) -> list[Future]:
        """
        Submit every schedule due at ``now`` to the worker pool.

        Schedules still running from an earlier tick are skipped here rather
        than queued behind their own lock.

        Returns:
            Futures resolving to Execution (or None when skipped), in due order
        """
        now = ensure_utc(now or utcnow())
        due = [s for s in self.store.due_schedules(now) if not self.runner.is_running(s.id)]
        if due:
            print(f"[{now.isoformat()}] {len(due)} schedule(s) due")
        return [self._pool.submit(self._run_safely, schedule.id, now) for schedule in due]

    def run_now(self, schedule_id: ScheduleID) -> Execution | None:
        """Manual trigger: run a schedule immediately on the calling thread."""
        return self.runner.run(schedule_id, utcnow())

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Poll until stop_event is set. The wait is interrupted as soon as it is."""
        stop_event = stop_event or threading.Event()
        print(f"Scheduler started (polling every {self.poll_interval_seconds}s)")
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(self.poll_interval_seconds)
        print("Scheduler stopped")

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def _run_safely(self, schedule_id: ScheduleID, now: datetime) -> Execution | None:
        try:
            return self.runner.run(schedule_id, now)
        except Exception as e:
            # Deleted between due_schedules() and the run, or an unexpected bug;
            # either way the loop keeps going
            error_file = log_notification_error(
                error_type="schedule",
                error_message=str(e),
                context={"schedule_id": schedule_id, "executed_at": now.isoformat()},
                log_dir=self.runner.error_log_dir,
            )
            print(f"  ✗ Schedule {schedule_id} could not run: {e}")
            print(f"    Error details logged to: {error_file}")
            return None
