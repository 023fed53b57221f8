#!/usr/bin/env python3
"""
Fantasy Tavern - command line entry point.

Usage:
    tavern serve                     # Run the API (with scheduler)
    tavern lines 6                   # Print week 6 lines for the default league
    tavern settle 6 --league 123     # Settle week 6 for a league
    tavern export-faab -o faab.csv   # Write the weekly FAAB adjustment CSV
    tavern init-db                   # Create database tables
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from typing import Optional

# Configure logging before other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _components(settings):
    """Database, Sleeper client, and ledger built from settings."""
    from tavern.betting.lock_window import LockWindow
    from tavern.data.sources.sleeper import SleeperClient
    from tavern.database.session import Database
    from tavern.tracking.ledger import WagerLedger

    database = Database(settings.database_url)
    database.create_all()
    sleeper = SleeperClient.from_settings(settings.sleeper)
    ledger = WagerLedger(
        database,
        LockWindow.from_settings(settings.betting),
        max_bets_per_batch=settings.betting.max_bets_per_batch,
    )
    return database, sleeper, ledger


async def show_lines(settings, week: int, league_id: str) -> int:
    from tavern.betting.line_generator import LineGenerator
    from tavern.betting.odds_converter import format_american_odds

    _, sleeper, _ = _components(settings)
    try:
        matchups = await sleeper.get_matchups(week, league_id=league_id)
        rosters = await sleeper.get_rosters(league_id)
        users = await sleeper.get_users(league_id)
    finally:
        await sleeper.close()

    markets = LineGenerator(settings.market).generate_markets(
        matchups, rosters, week, users=users, league_id=league_id
    )
    if not markets:
        print(f"No matchups found for week {week}")
        return 0

    for market in markets:
        print(f"{market.team1.name} ({market.team1.record}) vs {market.team2.name} ({market.team2.record})")
        print(f"  spread:    {market.team1.name} {market.spread_for(market.team1.roster_id):+g}"
              f" ({format_american_odds(market.spread.odds)})")
        print(f"  total:     {market.total.line:g}")
        print(f"  moneyline: {format_american_odds(market.moneyline.team1_odds)}"
              f" / {format_american_odds(market.moneyline.team2_odds)}")
    return 0


async def settle(settings, week: int, league_id: str) -> int:
    from tavern.scheduler.jobs import settle_week

    database, sleeper, ledger = _components(settings)
    try:
        report = await settle_week(sleeper, ledger, league_id, week)
    finally:
        await sleeper.close()
        database.dispose()

    print(
        f"Week {week}: {report['settled']} settled "
        f"({report['won']} won, {report['lost']} lost, {report['pushed']} pushed), "
        f"${report['total_credited']:.2f} credited"
    )
    return 0


def export_faab(settings, league_id: str, output: Optional[str]) -> int:
    from tavern.config.constants import FAAB_REPORT_LOOKBACK_DAYS
    from tavern.database.models import utc_now
    from tavern.database.session import Database
    from tavern.tracking.ledger import WagerLedger
    from tavern.tracking.reports import faab_adjustments, faab_adjustments_csv

    database = Database(settings.database_url)
    since = utc_now() - timedelta(days=FAAB_REPORT_LOOKBACK_DAYS)
    bets = WagerLedger(database).get_settled_since(league_id, since)
    content = faab_adjustments_csv(faab_adjustments(bets))
    database.dispose()

    if output:
        with open(output, "w", newline="") as f:
            f.write(content)
        logger.info(f"Wrote FAAB adjustments to {output}")
    else:
        sys.stdout.write(content)
    return 0


def init_db(settings) -> int:
    from tavern.database.session import Database

    database = Database(settings.database_url)
    database.create_all()
    database.dispose()
    logger.info(f"Database ready at {settings.database_url}")
    return 0


def serve(settings, host: str, port: int, no_scheduler: bool) -> int:
    import uvicorn

    if no_scheduler:
        settings.scheduler.scheduler_enabled = False
    uvicorn.run("api.main:app", host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main() -> None:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Fantasy Tavern - FAAB betting for Sleeper leagues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    tavern serve --port 8000
    tavern lines 6
    tavern settle 6 --league 1180507846524702720
    tavern export-faab --output faab.csv
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Disable background settlement and cache jobs",
    )

    for name, help_text in (("lines", "Print a week's betting lines"), ("settle", "Settle a week")):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("week", type=int)
        command.add_argument("--league", default=None, help="Sleeper league id")

    export_parser = subparsers.add_parser("export-faab", help="Write FAAB adjustment CSV")
    export_parser.add_argument("--league", default=None, help="Sleeper league id")
    export_parser.add_argument("-o", "--output", default=None, help="File path (default stdout)")

    subparsers.add_parser("init-db", help="Create database tables")

    args = parser.parse_args()

    from tavern.config.settings import get_settings

    settings = get_settings()
    level = logging.DEBUG if args.debug or settings.debug else getattr(logging, settings.log_level)
    logging.getLogger().setLevel(level)

    league_id = getattr(args, "league", None) or settings.sleeper.default_league_id

    try:
        if args.command == "serve":
            exit_code = serve(settings, args.host, args.port, args.no_scheduler)
        elif args.command == "lines":
            exit_code = asyncio.run(show_lines(settings, args.week, league_id))
        elif args.command == "settle":
            exit_code = asyncio.run(settle(settings, args.week, league_id))
        elif args.command == "export-faab":
            exit_code = export_faab(settings, league_id, args.output)
        else:
            exit_code = init_db(settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
