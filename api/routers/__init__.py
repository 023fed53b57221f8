"""API routers for Fantasy Tavern."""

from . import admin, auth, betting, health, leagues

__all__ = [
    "admin",
    "auth",
    "betting",
    "health",
    "leagues",
]
