from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from oddsledger.domain.errors import MalformedRecord
from oddsledger.domain.types import RawGameOdds
from oddsledger.integrations.providers import (
    ProviderAdapter,
    build_record,
    parse_line,
    parse_price,
    parse_start_time,
)

LEAGUES = {
    "NFL": "nfl",
    "NBA": "nba",
    "NHL": "nhl",
    "MLB": "mlb",
    "NCAAF": "ncaaf",
    "NCAAB": "ncaab",
}


def _market(odds: dict[str, Any], key: str) -> dict[str, Any]:
    market = odds.get(key) or {}
    if not isinstance(market, dict):
        raise MalformedRecord(f"{key} market is not an object")
    current = market.get("current")
    # Newer payloads nest the live numbers under "current"; older ones are flat.
    return current if isinstance(current, dict) else market


def _team_name(team: Any) -> str:
    if not isinstance(team, dict):
        return ""
    return str(team.get("full_name") or team.get("name") or "").strip()


class ActionNetworkAdapter(ProviderAdapter):
    name = "action_network"

    def request_for(self, sport: str, day: date) -> tuple[str, dict[str, str]] | None:
        league = LEAGUES.get(sport.upper())
        if league is None:
            return None
        return (
            f"{self.base_url}/scoreboard/{league}",
            {"date": day.strftime("%Y%m%d"), "periods": "event"},
        )

    def extract_records(self, payload: Any) -> Iterable[Any]:
        return payload.get("games") or []

    def parse_record(self, record: Any, sport: str) -> RawGameOdds:
        if not isinstance(record, dict):
            raise MalformedRecord("game entry is not an object")
        game_id = record.get("id") or record.get("game_id")
        if game_id is None:
            raise MalformedRecord("game has no id")

        teams = record.get("teams") or {}
        odds = record.get("best_odds") or record.get("odds") or {}
        if not isinstance(teams, dict) or not isinstance(odds, dict):
            raise MalformedRecord("teams/odds must be objects")

        spread = _market(odds, "spread")
        total = _market(odds, "total")
        moneyline = _market(odds, "moneyline")
        juice = self.default_juice
        spread_home = parse_line(spread.get("home_spread"), "home_spread")
        spread_away = parse_line(spread.get("away_spread"), "away_spread")
        total_line = parse_line(total.get("total"), "total")
        # Off-board markets carry no line; only quoted lines get the default juice.
        spread_juice = juice if spread_home is not None or spread_away is not None else None
        total_juice = juice if total_line is not None else None

        return build_record(
            provider=self.name,
            sport=sport.upper(),
            external_id=f"an_{game_id}",
            commence_time=parse_start_time(record.get("start_time") or record.get("datetime")),
            home_team=_team_name(teams.get("home")),
            away_team=_team_name(teams.get("away")),
            spread_home=spread_home,
            spread_home_price=parse_price(spread.get("home_odds"), "home_odds", spread_juice),
            spread_away=spread_away,
            spread_away_price=parse_price(spread.get("away_odds"), "away_odds", spread_juice),
            total_line=total_line,
            total_over_price=parse_price(total.get("over_odds"), "over_odds", total_juice),
            total_under_price=parse_price(total.get("under_odds"), "under_odds", total_juice),
            home_ml=parse_price(moneyline.get("home_ml"), "home_ml"),
            away_ml=parse_price(moneyline.get("away_ml"), "away_ml"),
        )
