"""Structured events emitted by the dispatch scheduler."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from loguru import logger


@dataclass(frozen=True)
class SchedulerEvent:
    """A single observable step of the scheduler."""
    name: str
    level: str = "INFO"
    reminder_id: Optional[str] = None
    outcome: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [self.name]
        if self.reminder_id is not None:
            parts.append(f"reminder={self.reminder_id}")
        if self.outcome is not None:
            parts.append(f"outcome={self.outcome}")
        parts.extend(f"{key}={value}" for key, value in self.fields.items())
        return " ".join(parts)


EventSink = Callable[[SchedulerEvent], None]


def log_event(event: SchedulerEvent) -> None:
    """Default sink: write the event through loguru with its fields bound as extra."""
    logger.bind(
        event=event.name,
        reminder_id=event.reminder_id,
        outcome=event.outcome,
        **event.fields,
    ).opt(depth=1).log(event.level, "[Scheduler] {}", event.describe())


def fan_out(*sinks: EventSink) -> EventSink:
    """Combine several sinks into one, called in order."""
    def emit(event: SchedulerEvent) -> None:
        for sink in sinks:
            sink(event)
    return emit
