"""Shared repository layer for the chatwatch services."""

from .credentials import CredentialRepository
from .presence import PresenceRepository

__all__ = [
    "CredentialRepository",
    "PresenceRepository",
]
