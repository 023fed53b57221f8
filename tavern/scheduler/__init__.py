"""
Job scheduling module.

Provides APScheduler-based background jobs for:
- Tuesday-morning settlement of the finished week
- Sleeper cache warm-up
- Health monitoring

Example:
    >>> from tavern.scheduler import SchedulerOrchestrator
    >>>
    >>> scheduler = SchedulerOrchestrator(settings, sleeper, ledger, league_ids)
    >>> scheduler.start()
    >>> scheduler.trigger_job("weekly_settlement")
    >>> scheduler.stop()
"""

from .orchestrator import SchedulerOrchestrator
from .jobs import health_check, settle_recent_weeks, settle_week, warm_cache

__all__ = [
    "SchedulerOrchestrator",
    "health_check",
    "settle_recent_weeks",
    "settle_week",
    "warm_cache",
]
