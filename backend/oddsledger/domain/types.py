from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from oddsledger.domain.enums import GameStatus

# Feeds disagree on a handful of city prefixes; keys are already normalized.
TEAM_ALIASES = {
    "la clippers": "los angeles clippers",
    "la lakers": "los angeles lakers",
    "la rams": "los angeles rams",
    "la chargers": "los angeles chargers",
    "la dodgers": "los angeles dodgers",
    "la angels": "los angeles angels",
    "la kings": "los angeles kings",
    "ny knicks": "new york knicks",
    "ny giants": "new york giants",
    "ny jets": "new york jets",
    "ny yankees": "new york yankees",
    "ny mets": "new york mets",
    "ny rangers": "new york rangers",
    "ny islanders": "new york islanders",
    "gs warriors": "golden state warriors",
    "philadelphia sixers": "philadelphia 76ers",
    "washington football team": "washington commanders",
}

# Two feeds quoting the same fixture never disagree on kickoff by more than this.
SAME_GAME_WINDOW = timedelta(hours=6)


def normalize_team(name: str) -> str:
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    cleaned = " ".join(folded.replace(".", " ").strip().lower().split())
    return TEAM_ALIASES.get(cleaned, cleaned)


def teams_match(left: str, right: str) -> bool:
    """Loose comparison: exact, one name inside the other, or a shared nickname."""
    a, b = normalize_team(left), normalize_team(right)
    if not a or not b:
        return False
    if a == b:
        return True
    a_words, b_words = a.split(), b.split()
    if set(a_words) <= set(b_words) or set(b_words) <= set(a_words):
        return True
    return len(a_words) > 1 and len(b_words) > 1 and a_words[-1] == b_words[-1]


def same_matchup(home_a: str, away_a: str, home_b: str, away_b: str) -> bool:
    # A team plays one game per window, so one exact side is enough.
    if normalize_team(home_a) == normalize_team(home_b) or normalize_team(away_a) == normalize_team(away_b):
        return True
    return teams_match(home_a, home_b) and teams_match(away_a, away_b)


def canonical_event_key(sport: str, commence_time: datetime, home_team: str, away_team: str) -> str:
    day = commence_time.astimezone(timezone.utc).date().isoformat()
    return f"{sport.upper()}:{day}:{normalize_team(away_team)}@{normalize_team(home_team)}"


def _validate_price(value: int | None, name: str) -> None:
    if value is not None and abs(value) < 100:
        raise ValueError(f"{name} must be <= -100 or >= 100, got {value}")


@dataclass(frozen=True, slots=True)
class RawGameOdds:
    provider: str
    sport: str
    external_id: str
    commence_time: datetime
    home_team: str
    away_team: str
    spread_home: Decimal | None = None
    spread_home_price: int | None = None
    spread_away: Decimal | None = None
    spread_away_price: int | None = None
    total_line: Decimal | None = None
    total_over_price: int | None = None
    total_under_price: int | None = None
    home_ml: int | None = None
    away_ml: int | None = None

    def __post_init__(self) -> None:
        if not self.external_id.strip():
            raise ValueError("external_id must not be empty")
        if not self.home_team.strip() or not self.away_team.strip():
            raise ValueError("home_team and away_team must not be empty")
        if self.commence_time.tzinfo is None:
            raise ValueError("commence_time must be timezone-aware")
        if all(
            value is None
            for value in (self.spread_home, self.spread_away, self.total_line, self.home_ml, self.away_ml)
        ):
            raise ValueError("record carries no spread, total or moneyline")
        for name in (
            "spread_home_price",
            "spread_away_price",
            "total_over_price",
            "total_under_price",
            "home_ml",
            "away_ml",
        ):
            _validate_price(getattr(self, name), name)

    @property
    def event_key(self) -> str:
        return canonical_event_key(self.sport, self.commence_time, self.home_team, self.away_team)

    @property
    def scheduled_date(self) -> date:
        return self.commence_time.astimezone(timezone.utc).date()


@dataclass(frozen=True, slots=True)
class GameResult:
    sport: str
    external_id: str
    commence_time: datetime
    home_team: str
    away_team: str
    status: GameStatus
    home_score: int | None = None
    away_score: int | None = None

    @property
    def event_key(self) -> str:
        return canonical_event_key(self.sport, self.commence_time, self.home_team, self.away_team)
