"""Exception types for the reminder system."""


class ReminderError(Exception):
    """Base class for reminder system errors."""


class ConfigError(ReminderError):
    """The configuration file contains unusable values."""


class StorageError(ReminderError):
    """The reminder store could not complete an operation."""


class ReminderNotFoundError(StorageError):
    """No reminder exists with the requested id."""

    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder not found: {reminder_id}")
        self.reminder_id = reminder_id


class InvalidTransitionError(StorageError):
    """A terminal status write targeted a reminder that is no longer pending."""

    def __init__(self, reminder_id: str, current: str, target: str):
        super().__init__(
            f"Cannot mark reminder {reminder_id} as {target}: status is already {current}"
        )
        self.reminder_id = reminder_id
        self.current = current
        self.target = target


class FetchError(ReminderError):
    """The reminder list could not be retrieved for a tick."""


class PersistenceError(ReminderError):
    """A delivery outcome could not be recorded."""

    def __init__(self, reminder_id: str, cause: Exception):
        super().__init__(f"Could not record outcome for reminder {reminder_id}: {cause}")
        self.reminder_id = reminder_id
        self.cause = cause
