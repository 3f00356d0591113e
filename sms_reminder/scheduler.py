"""Polling scheduler that dispatches due reminders over SMS."""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .errors import FetchError, InvalidTransitionError, PersistenceError, ReminderNotFoundError, StorageError
from .events import EventSink, SchedulerEvent, log_event
from .messaging import SmsGateway
from .models import Reminder, ReminderStatus
from .storage import ReminderStore


DEFAULT_POLL_INTERVAL = 60.0

Clock = Callable[[], datetime]


@dataclass
class TickReport:
    """Summary of one scheduler tick."""
    started_at: datetime
    examined: int = 0
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Exception] = field(default_factory=list)
    aborted: bool = False
    fetch_error: Optional[FetchError] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "examined": self.examined,
            "due": self.due,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": len(self.errors),
            "aborted": self.aborted,
            "fetch_failed": self.fetch_error is not None,
        }


class DispatchScheduler:
    """
    Scheduler that sends due reminders through an SMS gateway.

    Every tick reads the full reminder set from the store and decides what is
    due from stored state alone, so a restarted process picks up exactly
    where the previous one stopped. Ticks run serially on a background
    thread; at most one tick is in flight at any time.
    """

    def __init__(
        self,
        store: ReminderStore,
        gateway: SmsGateway,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Clock = datetime.now,
        sink: EventSink = log_event,
        run_on_start: bool = True,
    ):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.store = store
        self.gateway = gateway
        self.poll_interval = float(poll_interval)
        self.run_on_start = run_on_start
        self._clock = clock
        self._sink = sink
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._last_report: Optional[TickReport] = None
        self._tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the scheduler background thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="reminder-dispatch", daemon=True)
        self._thread.start()
        self._emit("scheduler_started", poll_interval=self.poll_interval)

    def stop(self, timeout: Optional[float] = 30.0) -> bool:
        """
        Stop the scheduler.

        The in-flight tick finishes the reminder it is currently dispatching
        and then ends early; no further ticks start.

        Returns:
            True if the background thread has exited
        """
        self.request_stop()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                self._emit("scheduler_stop_timeout", level="WARNING", timeout=timeout)
                return False
            self._thread = None
        self._emit("scheduler_stopped")
        return True

    def request_stop(self) -> None:
        """Ask the scheduler to stop without waiting for it."""
        self._stop_event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is requested. Returns True if it was."""
        return self._stop_event.wait(timeout)

    def _run_loop(self) -> None:
        next_tick = time.monotonic()
        if not self.run_on_start:
            next_tick += self.poll_interval

        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self.run_tick()

            next_tick += self.poll_interval
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self.poll_interval) + 1
                next_tick += missed * self.poll_interval
                self._emit("tick_overlap_skipped", level="WARNING", missed=missed)

    def run_tick(self) -> Optional[TickReport]:
        """
        Run one check-and-dispatch cycle.

        Returns:
            The tick's report, or None if another tick was still running
        """
        if not self._tick_lock.acquire(blocking=False):
            self._emit("tick_overlap_skipped", level="WARNING", missed=1)
            return None
        try:
            report = TickReport(started_at=self._clock())
            try:
                self._tick(report)
            except Exception as e:
                report.errors.append(e)
                self._emit("tick_failed", level="ERROR", stage="tick", error=repr(e))
            self._last_report = report
            self._tick_count += 1
            return report
        finally:
            self._tick_lock.release()

    def _tick(self, report: TickReport) -> None:
        now = report.started_at

        try:
            reminders = self.store.list_reminders()
        except StorageError as e:
            report.fetch_error = FetchError(str(e))
            self._emit("tick_failed", level="ERROR", stage="fetch", error=str(e))
            return
        except Exception as e:
            report.fetch_error = FetchError(f"Unexpected error listing reminders: {e!r}")
            self._emit("tick_failed", level="ERROR", stage="fetch", error=repr(e))
            return

        report.examined = len(reminders)
        self._emit("tick_started", examined=report.examined, now=now.isoformat())

        for index, reminder in enumerate(reminders):
            if self._stop_event.is_set():
                report.aborted = True
                self._emit("tick_aborted", level="WARNING", remaining=report.examined - index)
                break

            try:
                self._process(reminder, now, report)
            except Exception as e:
                report.errors.append(e)
                self._emit(
                    "dispatch_error",
                    level="ERROR",
                    reminder_id=getattr(reminder, "id", None),
                    error=repr(e),
                )

        self._emit(
            "tick_finished",
            due=report.due,
            sent=report.sent,
            failed=report.failed,
            skipped=report.skipped,
            errors=len(report.errors),
        )

    def _process(self, reminder: Reminder, now: datetime, report: TickReport) -> None:
        skip_reason = self._skip_reason(reminder, now)
        if skip_reason is not None:
            report.skipped += 1
            self._emit("reminder_skipped", level="DEBUG", reminder_id=reminder.id, reason=skip_reason)
            return

        report.due += 1
        self._dispatch(reminder, report)

    @staticmethod
    def _skip_reason(reminder: Reminder, now: datetime) -> Optional[str]:
        if reminder.completed:
            return "completed"
        if reminder.status.is_terminal:
            return f"status_{reminder.status.value}"
        if not reminder.is_due(now):
            return "not_due"
        return None

    def _dispatch(self, reminder: Reminder, report: TickReport) -> None:
        self._emit(
            "dispatch_attempt",
            reminder_id=reminder.id,
            title=reminder.title,
            phone_number=reminder.phone_number,
        )
        result = self.gateway.send(reminder.phone_number, reminder.title, reminder.description or None)

        if result.success:
            mark, outcome = self.store.mark_sent, ReminderStatus.SENT
        else:
            mark, outcome = self.store.mark_failed, ReminderStatus.FAILED

        try:
            mark(reminder.id)
        except (InvalidTransitionError, ReminderNotFoundError) as e:
            # Deleted or already resolved elsewhere since the fetch;
            # the stored state is left as it is.
            report.errors.append(e)
            self._emit(
                "outcome_conflict",
                level="WARNING",
                reminder_id=reminder.id,
                outcome=outcome.value,
                error=str(e),
            )
            return
        except StorageError as e:
            # The reminder stays pending and is sent again on a later tick.
            error = PersistenceError(reminder.id, e)
            report.errors.append(error)
            self._emit(
                "persistence_error",
                level="ERROR",
                reminder_id=reminder.id,
                outcome=outcome.value,
                error=str(e),
            )
            return

        if result.success:
            report.sent += 1
            self._emit("dispatch_sent", reminder_id=reminder.id, outcome=outcome.value, message_id=result.message_id)
        else:
            report.failed += 1
            self._emit(
                "dispatch_failed",
                level="WARNING",
                reminder_id=reminder.id,
                outcome=outcome.value,
                error=result.error,
            )

    def _emit(
        self,
        name: str,
        level: str = "INFO",
        reminder_id: Optional[str] = None,
        outcome: Optional[str] = None,
        **fields,
    ) -> None:
        self._sink(SchedulerEvent(name=name, level=level, reminder_id=reminder_id, outcome=outcome, fields=fields))

    def get_status(self) -> Dict[str, object]:
        """Get the scheduler's running state and the last tick's summary."""
        return {
            "running": self.is_running,
            "poll_interval": self.poll_interval,
            "ticks": self._tick_count,
            "last_tick": self._last_report.as_dict() if self._last_report else None,
        }
