from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any

from oddsledger.domain.enums import GameStatus
from oddsledger.domain.errors import MalformedRecord, ProviderUnavailable
from oddsledger.domain.types import GameResult, RawGameOdds
from oddsledger.integrations.providers import (
    ProviderAdapter,
    build_record,
    parse_line,
    parse_price,
    parse_start_time,
)

logger = logging.getLogger(__name__)

SPORT_PATHS = {
    "NFL": "football/nfl",
    "NBA": "basketball/nba",
    "NHL": "hockey/nhl",
    "MLB": "baseball/mlb",
    "NCAAF": "football/college-football",
    "NCAAB": "basketball/mens-college-basketball",
}


def scoreboard_request(base_url: str, sport: str, day: date) -> tuple[str, dict[str, str]] | None:
    path = SPORT_PATHS.get(sport.upper())
    if path is None:
        return None
    return f"{base_url.rstrip('/')}/{path}/scoreboard", {"dates": day.strftime("%Y%m%d")}


def split_competitors(event: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
    competitions = event.get("competitions") or []
    if not competitions or not isinstance(competitions[0], dict):
        raise MalformedRecord("event has no competition")
    competition = competitions[0]
    competitors = [c for c in competition.get("competitors") or [] if isinstance(c, dict)]
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    if home is None or away is None:
        raise MalformedRecord("event is missing a home or away competitor")
    return competition, home, away


def _display_name(competitor: dict[str, Any]) -> str:
    team = competitor.get("team") or {}
    return str(team.get("displayName") or team.get("name") or "").strip()


def game_status(event: dict[str, Any]) -> GameStatus:
    status = event.get("status")
    status_type = status.get("type") if isinstance(status, dict) else None
    if not isinstance(status_type, dict):
        return GameStatus.SCHEDULED
    if str(status_type.get("name", "")).upper() in {"STATUS_POSTPONED", "STATUS_CANCELED"}:
        return GameStatus.POSTPONED
    state = status_type.get("state")
    if state == "post":
        return GameStatus.FINAL
    if state == "in":
        return GameStatus.IN_PROGRESS
    return GameStatus.SCHEDULED


class EspnOddsAdapter(ProviderAdapter):
    """Backup feed: the pickcenter summary ESPN embeds in its scoreboard."""

    name = "espn"

    def request_for(self, sport: str, day: date) -> tuple[str, dict[str, str]] | None:
        return scoreboard_request(self.base_url, sport, day)

    def extract_records(self, payload: Any) -> Iterable[Any]:
        return payload.get("events") or []

    def parse_record(self, record: Any, sport: str) -> RawGameOdds:
        if not isinstance(record, dict) or not record.get("id"):
            raise MalformedRecord("event has no id")
        competition, home, away = split_competitors(record)
        odds_list = competition.get("odds") or []
        odds = odds_list[0] if odds_list and isinstance(odds_list[0], dict) else {}

        # ESPN quotes a single home-relative spread and no spread/total prices.
        spread_home = parse_line(odds.get("spread"), "spread")
        total_line = parse_line(odds.get("overUnder"), "overUnder")
        juice = self.default_juice
        return build_record(
            provider=self.name,
            sport=sport.upper(),
            external_id=f"espn_{record['id']}",
            commence_time=parse_start_time(record.get("date")),
            home_team=_display_name(home),
            away_team=_display_name(away),
            spread_home=spread_home,
            spread_home_price=juice if spread_home is not None else None,
            spread_away=-spread_home if spread_home is not None else None,
            spread_away_price=juice if spread_home is not None else None,
            total_line=total_line,
            total_over_price=juice if total_line is not None else None,
            total_under_price=juice if total_line is not None else None,
            home_ml=parse_price((odds.get("homeTeamOdds") or {}).get("moneyLine"), "homeTeamOdds.moneyLine"),
            away_ml=parse_price((odds.get("awayTeamOdds") or {}).get("moneyLine"), "awayTeamOdds.moneyLine"),
        )


class EspnScoreboardClient(EspnOddsAdapter):
    """Reads final scores from the same scoreboard endpoint the odds come from."""

    def parse_result(self, record: Any, sport: str) -> GameResult:
        if not isinstance(record, dict) or not record.get("id"):
            raise MalformedRecord("event has no id")
        _competition, home, away = split_competitors(record)
        status = game_status(record)
        home_score = away_score = None
        if status in {GameStatus.FINAL, GameStatus.IN_PROGRESS}:
            home_score = int(Decimal(str(home.get("score") or 0)))
            away_score = int(Decimal(str(away.get("score") or 0)))
        home_team, away_team = _display_name(home), _display_name(away)
        if not home_team or not away_team:
            raise MalformedRecord("event is missing team names")
        return GameResult(
            sport=sport.upper(),
            external_id=f"espn_{record['id']}",
            commence_time=parse_start_time(record.get("date")),
            home_team=home_team,
            away_team=away_team,
            status=status,
            home_score=home_score,
            away_score=away_score,
        )

    def fetch_results(self, sport: str, day: date) -> list[GameResult]:
        request = self.request_for(sport, day)
        if request is None:
            return []
        url, params = request
        payload = self.get_json(url, params, sport)
        try:
            records = list(self.extract_records(payload))
        except (AttributeError, TypeError) as exc:
            raise ProviderUnavailable(self.name, sport, f"unexpected payload shape: {exc}") from exc
        results: list[GameResult] = []
        for record in records:
            try:
                results.append(self.parse_result(record, sport))
            except (MalformedRecord, ArithmeticError, KeyError, TypeError, AttributeError, ValueError) as exc:
                logger.info("espn: skipping malformed %s result: %s", sport, exc)
        return results
