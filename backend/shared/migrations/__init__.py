"""Schema migrations for the chatwatch database."""

from .runner import MigrationRunner

__all__ = ["MigrationRunner"]
