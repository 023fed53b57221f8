"""
Sleeper fantasy API client.

Sleeper exposes a public, read-only JSON API with no authentication. This
client covers the league data the betting service needs:
- NFL state (current week and season)
- League metadata, users, and rosters with season records
- Weekly matchups with scores

Responses are cached briefly (60 seconds by default); the data is allowed to
be that stale.
"""
from datetime import datetime
from typing import Any, Optional

import aiohttp

from tavern.config.constants import MAX_WEEK, MIN_WEEK
from tavern.config.settings import SleeperSettings
from tavern.data.cache.cache_manager import CacheManager

from .base import (
    CachedDataSource,
    DataNotAvailableError,
    DataSourceError,
    DataSourceHealth,
    DataSourceStatus,
    RateLimitError,
    RetryConfig,
)


class SleeperClient(CachedDataSource):
    """
    Async client for the Sleeper v1 API.

    Example:
        >>> client = SleeperClient.from_settings(get_settings().sleeper)
        >>> week = await client.get_current_week()
        >>> matchups = await client.get_matchups(week)
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str = "https://api.sleeper.app/v1",
        default_league_id: Optional[str] = None,
        cache_ttl_seconds: int = 60,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        cache: Optional[CacheManager] = None,
        enabled: bool = True,
    ):
        super().__init__(
            source_name="sleeper",
            cache_ttl_seconds=cache_ttl_seconds,
            cache=cache,
            enabled=enabled,
            retry_config=RetryConfig(max_attempts=max_attempts),
        )
        self.base_url = base_url.rstrip("/")
        self.default_league_id = default_league_id
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(
        cls,
        settings: SleeperSettings,
        cache: Optional[CacheManager] = None,
    ) -> "SleeperClient":
        return cls(
            base_url=settings.base_url,
            default_league_id=settings.default_league_id,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            timeout_seconds=settings.timeout_seconds,
            max_attempts=settings.max_attempts,
            cache=cache or CacheManager.create_memory_cache(),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"User-Agent": "fantasy-tavern/1.0"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _make_request(self, path: str) -> Any:
        """
        GET a Sleeper endpoint and decode the JSON body.

        Raises:
            DataSourceError: Connection failure or unexpected status
            RateLimitError: HTTP 429
            DataNotAvailableError: HTTP 404
        """
        session = await self._get_session()
        url = f"{self.base_url}{path}"

        try:
            async with session.get(url) as response:
                if response.status == 200:
                    return await response.json()
                if response.status == 404:
                    raise DataNotAvailableError(self.source_name, f"Not found: {path}")
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        self.source_name,
                        retry_after_seconds=int(retry_after) if retry_after else None,
                    )
                raise DataSourceError(
                    f"Sleeper returned {response.status} for {path}",
                    self.source_name,
                    retry_allowed=response.status >= 500,
                )
        except aiohttp.ClientError as e:
            raise DataSourceError(
                f"Connection error: {e}",
                self.source_name,
                original_error=e,
                retry_allowed=True,
            )

    def _league(self, league_id: Optional[str]) -> str:
        league = league_id or self.default_league_id
        if not league:
            raise DataNotAvailableError(self.source_name, "No league id configured")
        return league

    async def _get(self, key: str, path: str, use_cache: bool = True) -> Any:
        return await self._cached_call(key, lambda: self._make_request(path), use_cache)

    async def health_check(self) -> DataSourceHealth:
        """Check if the Sleeper API answers the NFL state endpoint."""
        if not self.enabled:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.DISABLED,
                error_message="Sleeper integration disabled",
            )

        try:
            await self._make_request("/state/nfl")
        except DataSourceError as e:
            return DataSourceHealth(
                source_name=self.source_name,
                status=DataSourceStatus.UNHEALTHY,
                error_message=str(e),
            )
        return DataSourceHealth(
            source_name=self.source_name,
            status=DataSourceStatus.HEALTHY,
            last_success=datetime.now(),
        )

    # =========================================================================
    # ENDPOINTS
    # =========================================================================
    async def get_state(self, use_cache: bool = True) -> dict:
        """NFL state: week, season, season_type, and related fields."""
        return await self._get("state:nfl", "/state/nfl", use_cache) or {}

    async def get_current_week(self) -> int:
        """
        Current NFL week, clamped to the regular season range.

        Falls back to week 1 when Sleeper is unreachable, so read paths keep
        working during an outage.
        """
        try:
            state = await self.get_state()
            week = int(state.get("week") or MIN_WEEK)
        except (DataSourceError, TypeError, ValueError) as e:
            self.logger.warning(f"Could not fetch current week, defaulting to {MIN_WEEK}: {e}")
            return MIN_WEEK
        return min(max(week, MIN_WEEK), MAX_WEEK)

    async def get_league(self, league_id: Optional[str] = None) -> dict:
        """
        League metadata (name, season, settings).

        Raises:
            DataNotAvailableError: Sleeper has no league with that id
        """
        league = self._league(league_id)
        data = await self._get(f"league:{league}", f"/league/{league}")
        if not data:
            raise DataNotAvailableError(self.source_name, f"Unknown league: {league}")
        return data

    async def get_users(self, league_id: Optional[str] = None) -> list[dict]:
        league = self._league(league_id)
        return await self._get(f"users:{league}", f"/league/{league}/users") or []

    async def get_rosters(self, league_id: Optional[str] = None) -> list[dict]:
        league = self._league(league_id)
        return await self._get(f"rosters:{league}", f"/league/{league}/rosters") or []

    async def get_matchups(
        self,
        week: int,
        league_id: Optional[str] = None,
        use_cache: bool = True,
    ) -> list[dict]:
        """
        Matchup entries for a week, one per roster.

        An empty list (no schedule yet) is a normal result, not an error.
        """
        if not MIN_WEEK <= week <= MAX_WEEK:
            raise DataNotAvailableError(self.source_name, f"Week out of range: {week}")
        league = self._league(league_id)
        return (
            await self._get(
                f"matchups:{league}:{week}",
                f"/league/{league}/matchups/{week}",
                use_cache,
            )
            or []
        )
