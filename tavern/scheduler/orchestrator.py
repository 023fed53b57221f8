"""
Background scheduling for settlement, cache warm-up and health probes.

Jobs run on an AsyncIOScheduler inside the API's event loop. Times are
interpreted in the betting timezone, so "Tuesday 04:00" means Eastern by
default whatever the host clock says.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from tavern.scheduler import jobs

logger = logging.getLogger(__name__)


@dataclass
class JobRecord:
    """Outcome of a job's most recent run."""

    runs: int = 0
    last_run: Optional[datetime] = None
    last_status: str = "pending"
    last_error: Optional[str] = None

    def record(self, status: str, error: Optional[str] = None) -> None:
        self.runs += 1
        self.last_run = datetime.now()
        self.last_status = status
        self.last_error = error


class SchedulerOrchestrator:
    """
    Owns the scheduler and the three recurring jobs.

    Example:
        >>> scheduler = SchedulerOrchestrator(settings, sleeper, ledger, state.league_ids)
        >>> scheduler.start()
        >>> scheduler.trigger_job("weekly_settlement")
        >>> scheduler.stop()
    """

    def __init__(
        self,
        settings: Any,
        sleeper: Any,
        ledger: Any,
        league_ids: Callable[[], Iterable[str]],
    ):
        self.settings = settings
        self.sleeper = sleeper
        self.ledger = ledger
        self.league_ids = league_ids
        self.timezone = settings.betting.timezone
        self._records: dict[str, JobRecord] = {}

        # A late or missed run collapses into a single catch-up run
        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
        )
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler start requested but it is already running")
            return

        self._add_jobs()
        self.scheduler.start()
        for job in self.scheduler.get_jobs():
            logger.info(f"Scheduled {job.id}, first run {job.next_run_time or 'paused'}")

    def stop(self) -> None:
        if not self.is_running:
            return
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")

    def _add_jobs(self) -> None:
        cfg = self.settings.scheduler
        schedule = [
            (
                "weekly_settlement",
                "Settle Finished Week",
                self._run_settlement,
                CronTrigger(day_of_week=cfg.settlement_weekday, hour=cfg.settlement_hour, minute=0),
            ),
            (
                "warm_cache",
                "Warm Sleeper Cache",
                self._run_warm_cache,
                IntervalTrigger(minutes=cfg.cache_warm_interval_minutes),
            ),
            (
                "health_check",
                "Sleeper Health Probe",
                self._run_health_check,
                IntervalTrigger(minutes=cfg.health_check_interval_minutes),
            ),
        ]
        for job_id, name, func, trigger in schedule:
            self.scheduler.add_job(func, trigger=trigger, id=job_id, name=name, replace_existing=True)
            self._records.setdefault(job_id, JobRecord())

    async def _run_settlement(self) -> None:
        reports = await jobs.settle_recent_weeks(self.sleeper, self.ledger, self.league_ids())
        failed = [r for r in reports if r.get("status") == "error"]
        logger.info(
            f"Settlement pass settled {sum(r.get('settled', 0) for r in reports)} bets "
            f"across {len(reports)} league weeks ({len(failed)} errors)"
        )

    async def _run_warm_cache(self) -> None:
        await jobs.warm_cache(self.sleeper, self.league_ids())

    async def _run_health_check(self) -> None:
        await jobs.health_check(self.sleeper)

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        record = self._records.setdefault(event.job_id, JobRecord())
        if event.exception is None:
            record.record("success")
            return
        record.record("error", str(event.exception))
        logger.error(f"{event.job_id} raised {event.exception!r}")

    def get_job_status(self) -> dict[str, dict]:
        """Name, next run and last outcome for every scheduled job, keyed by id."""
        status = {}
        for job in self.scheduler.get_jobs():
            record = self._records.get(job.id, JobRecord())
            status[job.id] = {
                "name": job.name,
                "next_run": job.next_run_time,
                "last_run": record.last_run,
                "last_status": record.last_status,
                "last_error": record.last_error,
                "run_count": record.runs,
            }
        return status

    def trigger_job(self, job_id: str) -> bool:
        """Move job_id's next run to now. False when no such job exists."""
        if self.scheduler.get_job(job_id) is None:
            return False

        self.scheduler.modify_job(job_id, next_run_time=datetime.now(ZoneInfo(self.timezone)))
        logger.info(f"Manual run of {job_id} requested")
        return True
