"""Chat presence tracker: snapshot polling, join/leave inference, profile enrichment."""

from .enrichment import EnrichmentQueue
from .presence import PresenceDiff, ReconciliationEngine, diff_presence
from .registry import TenantRegistry
from .scheduler import Scheduler
from .state import TenantAuthState, TenantStatus
from .tokens import TokenManager

__all__ = [
    "EnrichmentQueue",
    "PresenceDiff",
    "ReconciliationEngine",
    "Scheduler",
    "TenantAuthState",
    "TenantRegistry",
    "TenantStatus",
    "TokenManager",
    "diff_presence",
]
