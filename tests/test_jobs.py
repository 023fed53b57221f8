"""Tests for scheduled jobs and the scheduler orchestrator."""

import asyncio

from tavern.betting.validator import PricedBet
from tavern.config.constants import BetStatus, BetType
from tavern.scheduler import SchedulerOrchestrator, jobs
from tavern.tracking.ledger import WagerLedger

from conftest import FINAL_MATCHUPS, LEAGUE_ID, OPEN_TIME, FrozenLockWindow


def _moneyline(week, selection, stake=10.0):
    return PricedBet(
        matchup_id=f"{LEAGUE_ID}:{week}:1",
        bet_type=BetType.MONEYLINE,
        selection=selection,
        stake=stake,
        odds=100,
        line=None,
        potential_payout=stake * 2,
        week=week,
    )


def test_settle_recent_weeks_covers_finished_week(database, make_user, sleeper):
    ledger = WagerLedger(database, FrozenLockWindow(OPEN_TIME))
    user_id = make_user()
    ledger.place_bets(user_id, [_moneyline(10, "1"), _moneyline(11, "1")])
    sleeper.matchups[10] = FINAL_MATCHUPS

    reports = asyncio.run(jobs.settle_recent_weeks(sleeper, ledger, [LEAGUE_ID]))

    assert [(r["week"], r["settled"]) for r in reports] == [(10, 1), (11, 0)]
    statuses = {bet.week: bet.status for bet in ledger.get_bets(user_id)}
    assert statuses == {10: BetStatus.WON, 11: BetStatus.PENDING}
    assert ledger.get_balance(user_id) == 100


def test_settle_recent_weeks_reports_errors(database, sleeper):
    sleeper.fail = True
    reports = asyncio.run(jobs.settle_recent_weeks(sleeper, WagerLedger(database), [LEAGUE_ID]))

    # current week falls back to 1 when Sleeper is down
    assert reports == [
        {"league_id": LEAGUE_ID, "week": 1, "status": "error", "error": "Sleeper is down"}
    ]


def test_warm_cache(sleeper):
    assert asyncio.run(jobs.warm_cache(sleeper, [LEAGUE_ID, "999"]))["leagues"] == 2

    sleeper.fail = True
    result = asyncio.run(jobs.warm_cache(sleeper, [LEAGUE_ID]))
    assert result["status"] == "error"


def test_orchestrator_registers_jobs(settings, sleeper, database):
    orchestrator = SchedulerOrchestrator(settings, sleeper, WagerLedger(database), lambda: [LEAGUE_ID])

    async def run():
        orchestrator.start()
        try:
            status = orchestrator.get_job_status()
            triggered = orchestrator.trigger_job("warm_cache")
            missing = orchestrator.trigger_job("nope")
        finally:
            orchestrator.stop()
        return status, triggered, missing

    status, triggered, missing = asyncio.run(run())

    assert set(status) == {"weekly_settlement", "warm_cache", "health_check"}
    assert status["weekly_settlement"]["last_status"] == "pending"
    assert triggered is True
    assert missing is False
    assert not orchestrator.is_running
