"""Reminder stores implementing the storage gateway used by the scheduler."""

import json
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Union

from filelock import FileLock, Timeout
from loguru import logger

from .errors import InvalidTransitionError, ReminderNotFoundError, StorageError
from .models import Reminder, ReminderStatus


class ReminderStore(Protocol):
    """Storage operations the dispatch scheduler depends on."""

    def list_reminders(self) -> List[Reminder]: ...

    def mark_sent(self, reminder_id: str) -> None: ...

    def mark_failed(self, reminder_id: str) -> None: ...


class InMemoryReminderStore:
    """
    Thread-safe reminder store kept in process memory.

    Terminal status writes are conditional: a reminder can only move out of
    ``pending`` once, so two dispatch attempts can never both record an
    outcome for the same id.
    """

    def __init__(self, reminders: Union[List[Reminder], None] = None):
        self._lock = threading.RLock()
        self._reminders: Dict[str, Reminder] = {}
        for reminder in reminders or []:
            self._reminders[reminder.id] = self._copy(reminder)

    def list_reminders(self) -> List[Reminder]:
        """Return snapshot copies so callers never mutate stored state."""
        with self._locked():
            self._refresh()
            return [self._copy(r) for r in self._reminders.values()]

    def get(self, reminder_id: str) -> Reminder:
        with self._locked():
            self._refresh()
            return self._copy(self._require(reminder_id))

    def add(self, reminder: Reminder) -> Reminder:
        with self._locked():
            self._refresh()
            if reminder.id in self._reminders:
                raise StorageError(f"Reminder already exists: {reminder.id}")
            self._reminders[reminder.id] = self._copy(reminder)
            self._save()
        logger.debug(f"Added reminder {reminder.id} scheduled for {reminder.scheduled_for}")
        return reminder

    def delete(self, reminder_id: str) -> None:
        with self._locked():
            self._refresh()
            self._require(reminder_id)
            del self._reminders[reminder_id]
            self._save()

    def set_completed(self, reminder_id: str, completed: bool = True) -> Reminder:
        """Archive or un-archive a reminder. Delivery status is left untouched."""
        with self._locked():
            self._refresh()
            reminder = self._require(reminder_id)
            reminder.completed = completed
            self._save()
            return self._copy(reminder)

    def update(
        self,
        reminder_id: str,
        title: Optional[str] = None,
        phone_number: Optional[str] = None,
        scheduled_for: Union[datetime, str, None] = None,
        description: Optional[str] = None,
    ) -> Reminder:
        """Edit a reminder's content. Raises ValueError for invalid input."""
        with self._locked():
            self._refresh()
            updated = self._require(reminder_id).with_changes(
                title=title,
                phone_number=phone_number,
                scheduled_for=scheduled_for,
                description=description,
            )
            self._reminders[reminder_id] = updated
            self._save()
            return self._copy(updated)

    def mark_sent(self, reminder_id: str) -> None:
        self._transition(reminder_id, ReminderStatus.SENT)

    def mark_failed(self, reminder_id: str) -> None:
        self._transition(reminder_id, ReminderStatus.FAILED)

    def _transition(self, reminder_id: str, target: ReminderStatus) -> None:
        with self._locked():
            self._refresh()
            reminder = self._require(reminder_id)
            if reminder.status is not ReminderStatus.PENDING:
                raise InvalidTransitionError(reminder_id, reminder.status.value, target.value)
            reminder.status = target
            try:
                self._save()
            except StorageError:
                reminder.status = ReminderStatus.PENDING
                raise

    def _require(self, reminder_id: str) -> Reminder:
        try:
            return self._reminders[reminder_id]
        except KeyError:
            raise ReminderNotFoundError(reminder_id) from None

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def _refresh(self) -> None:
        """Hook for persistent subclasses to reload state; called with the lock held."""

    def _save(self) -> None:
        """Hook for persistent subclasses; called with the lock held."""

    @staticmethod
    def _copy(reminder: Reminder) -> Reminder:
        return Reminder.from_dict(reminder.to_dict())


class JsonFileReminderStore(InMemoryReminderStore):
    """
    Reminder store persisted to a JSON file after every change.

    Every read-modify-write holds an OS-level lock on ``<path>.lock``, so the
    scheduler process and command line processes never overwrite each
    other's changes.
    """

    DEFAULT_LOCK_TIMEOUT = 10.0  # seconds

    def __init__(self, path: Union[str, Path], lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create directory for {self.path}: {e}") from e
        self._file_lock = FileLock(str(self.path) + ".lock")
        super().__init__(self._load())

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            try:
                self._file_lock.acquire(timeout=self.lock_timeout)
            except Timeout as e:
                raise StorageError(f"Timed out waiting for lock on {self.path}") from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _refresh(self) -> None:
        # Picks up changes written by other processes, e.g. the command line.
        self._reminders = {r.id: r for r in self._load()}

    def _load(self) -> List[Reminder]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
            return [Reminder.from_dict(record) for record in records]
        except (OSError, ValueError, TypeError) as e:
            raise StorageError(f"Could not read reminders from {self.path}: {e}") from e

    def _save(self) -> None:
        records = [r.to_dict() for r in self._reminders.values()]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Could not write reminders to {self.path}: {e}") from e
