"""Weekly study planning: scheduler, reminders, timer and calendar import."""

__version__ = "0.1.0"
