"""
Application state management for FastAPI.

Holds shared state across the application:
- Settings and database
- Sleeper client with its response cache
- Line generator and lock window
- Wager ledger and account service
- Scheduler orchestrator

Components passed to the constructor are used as-is; anything missing is
built from settings in initialize().
"""

import logging
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


class AppState:
    """
    Centralized application state.

    Initializes and manages lifecycle of all major components.
    """

    def __init__(
        self,
        settings: Any = None,
        database: Any = None,
        sleeper: Any = None,
        line_generator: Any = None,
        lock_window: Any = None,
        ledger: Any = None,
        accounts: Any = None,
        scheduler: Any = None,
    ):
        self.settings = settings
        self.database = database
        self.sleeper = sleeper
        self.line_generator = line_generator
        self.lock_window = lock_window
        self.ledger = ledger
        self.accounts = accounts
        self.scheduler = scheduler
        self._initialized = False
        self._init_error: Optional[str] = None
        self._started_at: Optional[datetime] = None

    async def initialize(self) -> None:
        """Build any missing components and start the scheduler."""
        if self._initialized:
            return

        # Import here to keep app import cheap
        from tavern.betting.line_generator import LineGenerator
        from tavern.betting.lock_window import LockWindow
        from tavern.config.settings import get_settings
        from tavern.data.sources.sleeper import SleeperClient
        from tavern.database.session import Database
        from tavern.scheduler.orchestrator import SchedulerOrchestrator
        from tavern.tracking.accounts import AccountService
        from tavern.tracking.ledger import WagerLedger

        try:
            if self.settings is None:
                self.settings = get_settings()
            logger.info("Settings loaded")

            if self.database is None:
                self.database = Database(self.settings.database_url)
            self.database.create_all()
            logger.info("Database ready")

            if self.sleeper is None:
                self.sleeper = SleeperClient.from_settings(self.settings.sleeper)
            if self.line_generator is None:
                self.line_generator = LineGenerator(self.settings.market)
            if self.lock_window is None:
                self.lock_window = LockWindow.from_settings(self.settings.betting)
            if self.ledger is None:
                self.ledger = WagerLedger(
                    self.database,
                    self.lock_window,
                    max_bets_per_batch=self.settings.betting.max_bets_per_batch,
                )
            if self.accounts is None:
                self.accounts = AccountService(
                    self.database,
                    default_balance=self.settings.betting.default_balance,
                )

            if self.scheduler is None and self.settings.scheduler.scheduler_enabled:
                self.scheduler = SchedulerOrchestrator(
                    settings=self.settings,
                    sleeper=self.sleeper,
                    ledger=self.ledger,
                    league_ids=self.league_ids,
                )
                self.scheduler.start()
                logger.info("Scheduler started")

        except Exception as e:
            self._init_error = f"{type(e).__name__}: {e}"
            logger.error(f"Failed to initialize components: {self._init_error}")
            raise

        self._initialized = True
        self._started_at = datetime.now()
        logger.info("All components initialized successfully")

    async def shutdown(self) -> None:
        """Gracefully shutdown all components."""
        if self.scheduler:
            self.scheduler.stop()
            logger.info("Scheduler stopped")
        if self.sleeper is not None and hasattr(self.sleeper, "close"):
            await self.sleeper.close()
        if self.database is not None:
            self.database.dispose()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def league_ids(self) -> list[str]:
        """Sleeper ids of every registered league, default league first."""
        from tavern.database.repository import LeagueRepository

        ids = [self.settings.sleeper.default_league_id]
        with self.database.session_scope() as session:
            for league in LeagueRepository(session).list_all():
                if league.sleeper_league_id not in ids:
                    ids.append(league.sleeper_league_id)
        return ids

    def get_health_status(self) -> dict:
        """Get health status of all components."""
        sleeper_health = None
        if self.sleeper is not None and hasattr(self.sleeper, "get_health"):
            sleeper_health = self.sleeper.get_health().to_dict()
        cache = getattr(self.sleeper, "cache", None)

        status = {
            "initialized": self._initialized,
            "settings": self.settings is not None,
            "database": self.database is not None,
            "sleeper": sleeper_health,
            "cache": cache.stats() if cache is not None else None,
            "ledger": self.ledger is not None,
            "scheduler": self.scheduler is not None,
            "scheduler_running": self.scheduler.is_running if self.scheduler else False,
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }
        if self._init_error:
            status["init_error"] = self._init_error
        return status
