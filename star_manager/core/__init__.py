"""Core logic: configuration, bulk execution, plans and backups."""

__all__ = [
    "backup",
    "config",
    "executor",
    "plan",
]
