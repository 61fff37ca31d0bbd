"""Tasks with dependencies, urgency scoring and JSON storage."""

__version__ = "0.1.0"
__all__ = ["task", "taskdata", "storage"]