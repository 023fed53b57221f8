"""
Betting line generation for head-to-head fantasy matchups.

Turns a week's Sleeper matchups and season roster records into priced
markets: a point spread, a game total, and moneyline odds per matchup.

Pricing model:
- Power rating = points per game + record weight * (win% - .500)
  + differential weight * (points for - points against per game)
- Spread = rating gap, rounded to the nearest half point
- Total = sum of both teams' points per game
- Moneyline = logistic win probability from the spread, priced with hold

Generation is a pure function of its inputs so repeated requests before the
lock window return identical prices.
"""
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Optional

from loguru import logger

from tavern.betting.odds_converter import (
    price_two_way,
    round_to_half,
    win_probability_from_spread,
)
from tavern.config.constants import (
    LARGE_SPREAD_JUICE,
    SPREAD_JUICE_TIERS,
    STANDARD_JUICE,
    BetType,
    TotalSide,
)
from tavern.config.settings import MarketSettings


@dataclass
class TeamProfile:
    """Season form of one roster, normalised per game."""

    roster_id: str
    name: str
    owner: str
    wins: int
    losses: int
    ties: int
    points_per_game: float
    points_against_per_game: float
    rating: float
    has_history: bool

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def record(self) -> str:
        if self.ties:
            return f"{self.wins}-{self.losses}-{self.ties}"
        return f"{self.wins}-{self.losses}"


@dataclass
class BettingLine:
    """A single priced selection on one market."""

    matchup_id: str
    bet_type: BetType
    selection: str
    odds: int
    line: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "matchup_id": self.matchup_id,
            "bet_type": self.bet_type.value,
            "selection": self.selection,
            "odds": self.odds,
            "line": self.line,
        }


@dataclass
class SpreadMarket:
    favorite: Optional[str]  # roster id, None for a pick'em
    line: float  # size of the spread, always >= 0
    odds: int


@dataclass
class TotalMarket:
    line: float
    over_odds: int = STANDARD_JUICE
    under_odds: int = STANDARD_JUICE


@dataclass
class MoneylineMarket:
    team1_odds: int
    team2_odds: int
    team1_win_probability: float


@dataclass
class MatchupMarket:
    """All markets offered on one head-to-head matchup."""

    matchup_id: str
    week: int
    team1: TeamProfile
    team2: TeamProfile
    spread: SpreadMarket
    total: TotalMarket
    moneyline: MoneylineMarket
    neutral: bool = False
    lines: list[BettingLine] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.lines:
            self.lines = self._build_lines()

    def spread_for(self, roster_id: str) -> float:
        """Handicap applied to a side: negative for the favourite."""
        if self.spread.favorite is None:
            return 0.0
        if roster_id == self.spread.favorite:
            return -self.spread.line
        return self.spread.line

    def _build_lines(self) -> list[BettingLine]:
        team1_id = self.team1.roster_id
        team2_id = self.team2.roster_id
        return [
            BettingLine(self.matchup_id, BetType.SPREAD, team1_id, self.spread.odds, self.spread_for(team1_id)),
            BettingLine(self.matchup_id, BetType.SPREAD, team2_id, self.spread.odds, self.spread_for(team2_id)),
            BettingLine(self.matchup_id, BetType.TOTAL, TotalSide.OVER.value, self.total.over_odds, self.total.line),
            BettingLine(self.matchup_id, BetType.TOTAL, TotalSide.UNDER.value, self.total.under_odds, self.total.line),
            BettingLine(self.matchup_id, BetType.MONEYLINE, team1_id, self.moneyline.team1_odds),
            BettingLine(self.matchup_id, BetType.MONEYLINE, team2_id, self.moneyline.team2_odds),
        ]

    def to_dict(self) -> dict:
        return {
            "matchup_id": self.matchup_id,
            "week": self.week,
            "neutral": self.neutral,
            "team1": _team_dict(self.team1),
            "team2": _team_dict(self.team2),
            "spread": asdict(self.spread),
            "total": asdict(self.total),
            "moneyline": asdict(self.moneyline),
            "lines": [line.to_dict() for line in self.lines],
        }


def _team_dict(team: TeamProfile) -> dict:
    return {
        "roster_id": team.roster_id,
        "name": team.name,
        "owner": team.owner,
        "record": team.record,
        "points_per_game": round(team.points_per_game, 2),
        "rating": round(team.rating, 2),
    }


def matchup_key(week: int, matchup_id: Any, league_id: Optional[str] = None) -> str:
    """Composite market id: league, week, and Sleeper matchup number."""
    if league_id:
        return f"{league_id}:{week}:{matchup_id}"
    return f"{week}:{matchup_id}"


def _points(settings: dict, key: str) -> float:
    """Sleeper splits points into whole and hundredths fields."""
    whole = settings.get(key) or 0
    hundredths = settings.get(f"{key}_decimal") or 0
    return float(whole) + float(hundredths) / 100


def spread_juice(spread: float) -> int:
    """Odds on both sides of a spread, slightly worse for big lines."""
    for max_size, odds in SPREAD_JUICE_TIERS:
        if spread <= max_size:
            return odds
    return LARGE_SPREAD_JUICE


class LineGenerator:
    """
    Prices head-to-head fantasy matchups.

    Example:
        >>> generator = LineGenerator()
        >>> markets = generator.generate_markets(matchups, rosters, week=6)
        >>> for market in markets:
        ...     print(market.spread.favorite, market.spread.line, market.total.line)
    """

    def __init__(self, config: Optional[MarketSettings] = None):
        self.config = config or MarketSettings()

    def build_profiles(
        self,
        rosters: Iterable[dict],
        week: int,
        users: Optional[Iterable[dict]] = None,
    ) -> dict[str, TeamProfile]:
        """
        Compute a TeamProfile for every roster.

        Teams with no games played are treated as league average.
        """
        users_by_id = {u.get("user_id"): u for u in (users or [])}
        raw = []
        for roster in rosters:
            settings = roster.get("settings") or {}
            wins = int(settings.get("wins") or 0)
            losses = int(settings.get("losses") or 0)
            ties = int(settings.get("ties") or 0)
            raw.append(
                (
                    roster,
                    wins,
                    losses,
                    ties,
                    _points(settings, "fpts"),
                    _points(settings, "fpts_against"),
                )
            )

        played = [(pf / (w + l + t)) for _, w, l, t, pf, _ in raw if w + l + t > 0]
        league_average = sum(played) / len(played) if played else self.config.baseline_points

        regression = 0.0
        if week <= self.config.early_season_weeks:
            regression = self.config.early_season_regression

        profiles = {}
        for roster, wins, losses, ties, points_for, points_against in raw:
            games = wins + losses + ties
            if games > 0:
                ppg = points_for / games
                papg = points_against / games
                win_pct = (wins + ties / 2) / games
            else:
                ppg = papg = league_average
                win_pct = 0.5

            rating = (
                ppg
                + self.config.record_weight * (win_pct - 0.5)
                + self.config.differential_weight * (ppg - papg)
            )

            if regression:
                ppg = ppg * (1 - regression) + league_average * regression
                rating = rating * (1 - regression) + league_average * regression

            roster_id = str(roster.get("roster_id"))
            user = users_by_id.get(roster.get("owner_id")) or {}
            profiles[roster_id] = TeamProfile(
                roster_id=roster_id,
                name=team_display_name(roster, user),
                owner=user.get("display_name") or f"Owner {roster_id}",
                wins=wins,
                losses=losses,
                ties=ties,
                points_per_game=ppg,
                points_against_per_game=papg,
                rating=rating,
                has_history=games > 0,
            )

        return profiles

    def price_matchup(
        self,
        matchup_id: str,
        week: int,
        team1: TeamProfile,
        team2: TeamProfile,
    ) -> MatchupMarket:
        """Build spread, total, and moneyline markets for one pairing."""
        neutral = not team1.has_history and not team2.has_history

        if neutral:
            spread_size = 0.0
            total_line = round_to_half(2 * self.config.baseline_points)
        else:
            gap = team1.rating - team2.rating
            spread_size = min(round_to_half(abs(gap)), self.config.max_spread)
            total_line = round_to_half(team1.points_per_game + team2.points_per_game)

        if spread_size == 0:
            favorite = None
            signed_spread = 0.0
        elif team1.rating > team2.rating:
            favorite = team1.roster_id
            signed_spread = spread_size
        else:
            favorite = team2.roster_id
            signed_spread = -spread_size

        team1_probability = win_probability_from_spread(
            signed_spread, self.config.logistic_scale
        )
        team1_odds, team2_odds = price_two_way(
            team1_probability,
            self.config.hold,
            self.config.max_favorite_probability,
        )

        return MatchupMarket(
            matchup_id=matchup_id,
            week=week,
            team1=team1,
            team2=team2,
            spread=SpreadMarket(
                favorite=favorite,
                line=spread_size,
                odds=spread_juice(spread_size),
            ),
            total=TotalMarket(line=total_line),
            moneyline=MoneylineMarket(
                team1_odds=team1_odds,
                team2_odds=team2_odds,
                team1_win_probability=round(team1_probability, 4),
            ),
            neutral=neutral,
        )

    def generate_markets(
        self,
        matchups: Iterable[dict],
        rosters: Iterable[dict],
        week: int,
        users: Optional[Iterable[dict]] = None,
        league_id: Optional[str] = None,
    ) -> list[MatchupMarket]:
        """
        Price every head-to-head pairing in a week.

        Args:
            matchups: Sleeper matchup entries (one per roster)
            rosters: Sleeper rosters with season settings
            week: Week being priced
            users: Optional Sleeper users for team and owner names
            league_id: Optional league id folded into market ids

        Returns:
            One MatchupMarket per complete pairing, ordered by matchup number
        """
        profiles = self.build_profiles(rosters, week, users)

        pairs: dict[Any, list[dict]] = defaultdict(list)
        for entry in matchups or []:
            if entry.get("matchup_id") is None:
                continue  # bye week
            pairs[entry["matchup_id"]].append(entry)

        markets = []
        for sleeper_matchup_id in sorted(pairs, key=str):
            sides = pairs[sleeper_matchup_id]
            if len(sides) != 2:
                logger.debug(
                    f"Skipping matchup {sleeper_matchup_id}: {len(sides)} sides"
                )
                continue

            team1 = profiles.get(str(sides[0].get("roster_id")))
            team2 = profiles.get(str(sides[1].get("roster_id")))
            if team1 is None or team2 is None:
                logger.warning(
                    f"Skipping matchup {sleeper_matchup_id}: roster missing"
                )
                continue

            markets.append(
                self.price_matchup(
                    matchup_key(week, sleeper_matchup_id, league_id),
                    week,
                    team1,
                    team2,
                )
            )

        return markets

    def generate_lines(
        self,
        matchups: Iterable[dict],
        rosters: Iterable[dict],
        week: int,
        users: Optional[Iterable[dict]] = None,
        league_id: Optional[str] = None,
    ) -> list[BettingLine]:
        """Flat list of every priced selection for the week."""
        markets = self.generate_markets(matchups, rosters, week, users, league_id)
        return [line for market in markets for line in market.lines]


def team_display_name(roster: dict, user: dict) -> str:
    """Roster team name, then the owner's team name, then their display name."""
    roster_meta = roster.get("metadata") or {}
    user_meta = user.get("metadata") or {}
    return (
        roster_meta.get("team_name")
        or user_meta.get("team_name")
        or user.get("display_name")
        or f"Team {roster.get('roster_id')}"
    )


def generate_lines(
    matchups: Iterable[dict],
    rosters: Iterable[dict],
    week: int,
    users: Optional[Iterable[dict]] = None,
    league_id: Optional[str] = None,
    config: Optional[MarketSettings] = None,
) -> list[BettingLine]:
    """Convenience wrapper around LineGenerator.generate_lines."""
    return LineGenerator(config).generate_lines(matchups, rosters, week, users, league_id)
