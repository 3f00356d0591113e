"""Scheduled SMS reminders dispatched by a polling background scheduler."""

__version__ = "1.0.0"
