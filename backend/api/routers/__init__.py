"""API Routers package

Routers are organized by feature domain.
"""

from . import auth_router, presence_router

__all__ = [
    "auth_router",
    "presence_router",
]
