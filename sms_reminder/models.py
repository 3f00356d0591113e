"""Reminder data model."""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


TITLE_MAX_LENGTH = 200
PHONE_MIN_LENGTH = 10
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")


class ReminderStatus(str, Enum):
    """Delivery status of a reminder."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ReminderStatus.PENDING


def normalize_timestamp(value: Union[datetime, str]) -> datetime:
    """
    Convert a timestamp to local wall-clock time without tzinfo.

    Timezone-aware values are converted to the local zone first, so every
    stored ``scheduled_for`` compares directly against ``datetime.now()``.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
    if not isinstance(value, datetime):
        raise TypeError(f"Expected datetime or ISO string, got {type(value).__name__}")
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def validate_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError("Title too long")
    return title


def validate_phone_number(phone_number: str) -> str:
    phone_number = (phone_number or "").strip()
    if len(phone_number) < PHONE_MIN_LENGTH:
        raise ValueError("Phone number must be at least 10 digits")
    if not PHONE_PATTERN.match(phone_number):
        raise ValueError("Invalid phone number format (E.164 format recommended)")
    return phone_number


@dataclass
class Reminder:
    """A text message reminder owned by the reminder store."""
    id: str
    title: str
    phone_number: str
    scheduled_for: datetime
    description: Optional[str] = None
    status: ReminderStatus = ReminderStatus.PENDING
    completed: bool = False

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = ReminderStatus(self.status)
        self.scheduled_for = normalize_timestamp(self.scheduled_for)

    @classmethod
    def create(
        cls,
        title: str,
        phone_number: str,
        scheduled_for: Union[datetime, str],
        description: Optional[str] = None,
    ) -> "Reminder":
        """Validate user input and build a new pending reminder."""
        if description is not None:
            description = description.strip() or None
        return cls(
            id=str(uuid.uuid4()),
            title=validate_title(title),
            phone_number=validate_phone_number(phone_number),
            scheduled_for=normalize_timestamp(scheduled_for),
            description=description,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Reminder":
        """Create a Reminder from its persisted dictionary form."""
        for key in ("id", "title", "phoneNumber", "scheduledFor"):
            if key not in data:
                raise ValueError(f"Reminder record is missing '{key}' field")
        return cls(
            id=str(data["id"]),
            title=data["title"],
            phone_number=data["phoneNumber"],
            scheduled_for=normalize_timestamp(data["scheduledFor"]),
            description=data.get("description"),
            status=ReminderStatus(data.get("status", ReminderStatus.PENDING.value)),
            completed=bool(data.get("completed", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "phoneNumber": self.phone_number,
            "scheduledFor": self.scheduled_for.isoformat(),
            "status": self.status.value,
            "completed": self.completed,
        }

    def with_changes(
        self,
        title: Optional[str] = None,
        phone_number: Optional[str] = None,
        scheduled_for: Union[datetime, str, None] = None,
        description: Optional[str] = None,
    ) -> "Reminder":
        """
        Return an edited copy, validated like a new reminder.

        Arguments left as None keep their current value; an empty description
        clears it. Status and completion are never changed by an edit.
        """
        if description is not None:
            description = description.strip() or None
        else:
            description = self.description
        return Reminder(
            id=self.id,
            title=validate_title(self.title if title is None else title),
            phone_number=validate_phone_number(self.phone_number if phone_number is None else phone_number),
            scheduled_for=self.scheduled_for if scheduled_for is None else normalize_timestamp(scheduled_for),
            description=description,
            status=self.status,
            completed=self.completed,
        )

    def category(self, now: datetime) -> str:
        """Group for listing: ``completed``, ``overdue`` (due, not completed) or ``active``."""
        if self.completed:
            return "completed"
        return "overdue" if self.is_due(now) else "active"

    def is_due(self, now: datetime) -> bool:
        """A reminder scheduled exactly at ``now`` is due."""
        return self.scheduled_for <= now


@dataclass
class SendResult:
    """Outcome reported by a messaging gateway."""
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
