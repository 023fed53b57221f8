"""
Background job definitions for the scheduler.

Each job is an async function that performs one task:
- settle_week: Grade a week's pending bets from Sleeper final scores
- settle_recent_weeks: Tuesday-morning pass over the week just played
- warm_cache: Refresh Sleeper responses before users ask for them
- health_check: Monitor the Sleeper API
"""

import logging
from datetime import datetime
from typing import Any, Iterable

from tavern.config.constants import MIN_WEEK
from tavern.tracking.ledger import results_from_matchups

logger = logging.getLogger(__name__)


async def settle_week(sleeper: Any, ledger: Any, league_id: str, week: int) -> dict:
    """
    Settle every pending bet for one league and week.

    Final scores are fetched fresh, bypassing the response cache. Safe to
    re-run: bets already settled are skipped.

    Args:
        sleeper: SleeperClient instance
        ledger: WagerLedger instance
        league_id: Sleeper league id
        week: Week to settle

    Returns:
        Dict with the settlement summary
    """
    matchups = await sleeper.get_matchups(week, league_id=league_id, use_cache=False)
    results = results_from_matchups(matchups, week, league_id)
    summary = ledger.settle(results)

    logger.info(
        f"League {league_id} week {week}: settled {summary.settled} bets "
        f"across {len(results)} matchups"
    )
    return {"league_id": league_id, "week": week, "matchups": len(results), **summary.to_dict()}


async def settle_recent_weeks(sleeper: Any, ledger: Any, league_ids: Iterable[str]) -> list[dict]:
    """
    Scheduled settlement after Monday night.

    Sleeper may or may not have advanced its current week by the time this
    runs, so both the current and previous week are settled. Unplayed
    matchups have no scores and are left pending.
    """
    current_week = await sleeper.get_current_week()
    weeks = sorted({max(MIN_WEEK, current_week - 1), current_week})

    reports = []
    for league_id in league_ids:
        for week in weeks:
            try:
                reports.append(await settle_week(sleeper, ledger, league_id, week))
            except Exception as e:
                logger.error(f"Settlement failed for league {league_id} week {week}: {e}")
                reports.append(
                    {"league_id": league_id, "week": week, "status": "error", "error": str(e)}
                )
    return reports


async def warm_cache(sleeper: Any, league_ids: Iterable[str]) -> dict:
    """
    Pre-fetch the data the lines page needs.

    Returns:
        Dict with warm-up status
    """
    start_time = datetime.now()
    warmed = 0

    try:
        week = await sleeper.get_current_week()
        for league_id in league_ids:
            await sleeper.get_users(league_id)
            await sleeper.get_rosters(league_id)
            await sleeper.get_matchups(week, league_id=league_id)
            warmed += 1
    except Exception as e:
        logger.error(f"Cache warm-up failed: {e}")
        return {"status": "error", "error": str(e), "leagues": warmed}

    elapsed = (datetime.now() - start_time).total_seconds()
    logger.debug(f"Warmed Sleeper cache for {warmed} leagues in {elapsed:.1f}s")
    return {"status": "success", "leagues": warmed, "elapsed_seconds": elapsed}


async def health_check(sleeper: Any) -> Any:
    """Periodic health probe of the Sleeper API."""
    health = await sleeper.health_check()
    if health.status.value != "healthy":
        logger.warning(f"Sleeper API {health.status.value}: {health.error_message}")
    return health
