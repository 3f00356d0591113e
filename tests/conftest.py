"""Shared fixtures for the test suite."""

from datetime import datetime, timedelta
from typing import List

import pytest
from unittest.mock import Mock

from sms_reminder.events import SchedulerEvent
from sms_reminder.models import Reminder, ReminderStatus, SendResult


FIXED_NOW = datetime(2026, 10, 17, 9, 30, 0)


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class EventRecorder:
    """Event sink that keeps everything it receives."""

    def __init__(self):
        self.events: List[SchedulerEvent] = []

    def __call__(self, event: SchedulerEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> List[SchedulerEvent]:
        return [e for e in self.events if e.name == name]

    def names(self) -> List[str]:
        return [e.name for e in self.events]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def gateway():
    gw = Mock(spec=["send"])
    gw.send.return_value = SendResult(success=True, message_id="SM123")
    return gw


@pytest.fixture
def make_reminder():
    counter = iter(range(1, 1000))

    def factory(
        offset: timedelta = timedelta(seconds=-5),
        status: ReminderStatus = ReminderStatus.PENDING,
        completed: bool = False,
        title: str = "Test login",
        phone_number: str = "+15551234567",
        description=None,
        reminder_id=None,
    ) -> Reminder:
        return Reminder(
            id=reminder_id or f"r{next(counter)}",
            title=title,
            phone_number=phone_number,
            scheduled_for=FIXED_NOW + offset,
            description=description,
            status=status,
            completed=completed,
        )

    return factory
