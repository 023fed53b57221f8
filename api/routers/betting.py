"""FAAB betting endpoints: lines, placement, balance, history, settlement."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from api.deps import get_state, require_admin, require_member, resolve_league
from tavern.betting.errors import BettingLockedError
from tavern.betting.validator import ProposedBet, check_week_open, price_bets
from tavern.config.constants import MAX_WEEK, MIN_WEEK, BetStatus
from tavern.data.sources.base import DataSourceError
from tavern.scheduler.jobs import settle_week
from tavern.tracking.reports import compute_stats

logger = logging.getLogger(__name__)

router = APIRouter()


class BetRequest(BaseModel):
    """One bet in a submitted batch. Odds and line sent by clients are ignored."""

    matchup_id: Optional[str] = None
    bet_type: Optional[str] = None
    selection: Optional[str] = None
    stake: float = 0
    odds: Optional[int] = None
    line: Optional[float] = None


class PlaceBetsRequest(BaseModel):
    """A batch of bets; placed all together or not at all."""

    bets: list[BetRequest] = Field(default_factory=list)
    week: Optional[int] = None


class SettleBetRequest(BaseModel):
    """Manual settlement of one bet."""

    status: BetStatus
    actual_payout: Optional[float] = None


def _check_week(week: int) -> None:
    if not MIN_WEEK <= week <= MAX_WEEK:
        raise HTTPException(
            status_code=400,
            detail=f"Week must be between {MIN_WEEK} and {MAX_WEEK}",
        )


async def _markets(app_state: Any, league_id: str, week: int) -> tuple[list, list]:
    """Raw Sleeper matchups for the week and the markets priced from them."""
    sleeper = app_state.sleeper
    try:
        matchups = await sleeper.get_matchups(week, league_id=league_id)
        if not matchups:
            return [], []
        rosters = await sleeper.get_rosters(league_id)
        users = await sleeper.get_users(league_id)
    except DataSourceError as e:
        logger.error(f"Sleeper unavailable for league {league_id} week {week}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch league data from Sleeper")

    markets = app_state.line_generator.generate_markets(
        matchups, rosters, week, users=users, league_id=league_id
    )
    return matchups, markets


@router.get("/betting/lines/{week}")
async def get_lines(request: Request, week: int) -> dict[str, Any]:
    """
    Betting lines for every matchup in a week.

    Returns grouped markets for display plus the flat list of selections.
    """
    _check_week(week)
    app_state = get_state(request)
    league_id = resolve_league(request)

    _, markets = await _markets(app_state, league_id, week)
    response = {
        "week": week,
        "league_id": league_id,
        "betting": app_state.lock_window.status(),
        "markets": [market.to_dict() for market in markets],
        "lines": [line.to_dict() for market in markets for line in market.lines],
    }
    if not markets:
        response["message"] = "No matchups found for this week"
    return response


@router.post("/betting/bets")
async def place_bets(request: Request, body: PlaceBetsRequest) -> dict[str, Any]:
    """
    Place a batch of bets for the signed-in member.

    Every bet is priced from the server's current lines, and only the current
    Sleeper week is open. The whole batch is rejected if any bet is invalid,
    betting is locked, the week is closed, or the combined stake exceeds the
    balance.
    """
    app_state = get_state(request)
    league_id = resolve_league(request)
    member = require_member(request, league_id)

    current_week = await app_state.sleeper.get_current_week()
    week = body.week or current_week
    _check_week(week)

    proposed = [ProposedBet.from_dict(bet.model_dump()) for bet in body.bets]
    matchups, markets = await _markets(app_state, league_id, week)
    priced = price_bets(
        proposed,
        [line for market in markets for line in market.lines],
        week=week,
    )
    if app_state.lock_window.is_locked():
        raise BettingLockedError()
    check_week_open(week, current_week, matchups)

    result = app_state.ledger.place_bets(member.id, priced)
    return result.to_dict()


@router.get("/betting/balance")
async def get_balance(request: Request) -> dict[str, Any]:
    """Current FAAB balance of the signed-in member."""
    app_state = get_state(request)
    league_id = resolve_league(request)
    member = require_member(request, league_id)

    return {
        "user_id": member.id,
        "roster_id": member.roster_id,
        "team_name": member.team_name,
        "owner_name": member.owner_name,
        "balance": app_state.ledger.get_balance(member.id),
        "betting": app_state.lock_window.status(),
    }


@router.get("/betting/history")
async def get_history(request: Request) -> dict[str, Any]:
    """Bet history, newest first, with summary stats."""
    app_state = get_state(request)
    league_id = resolve_league(request)
    member = require_member(request, league_id)

    bets = app_state.ledger.get_bets(member.id)
    return {
        "bets": [bet.to_dict() for bet in bets],
        "stats": compute_stats(bets).to_dict(),
    }


@router.post("/betting/settle/{week}")
async def settle(request: Request, week: int) -> dict[str, Any]:
    """Settle a week's pending bets from Sleeper final scores (admin)."""
    require_admin(request)
    _check_week(week)
    app_state = get_state(request)
    league_id = resolve_league(request)

    try:
        return await settle_week(app_state.sleeper, app_state.ledger, league_id, week)
    except DataSourceError as e:
        logger.error(f"Settlement of week {week} aborted: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch final scores from Sleeper")


@router.post("/betting/bets/{bet_id}/settle")
async def settle_bet(request: Request, bet_id: int, body: SettleBetRequest) -> dict[str, Any]:
    """Manually settle one bet (admin). Settling twice has no further effect."""
    require_admin(request)
    app_state = get_state(request)

    settled = app_state.ledger.settle_bet(bet_id, body.status, body.actual_payout)
    return {"bet_id": bet_id, "settled": settled}
