from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
import requests

from oddsledger.domain.enums import GameStatus
from oddsledger.domain.errors import ProviderEmpty, ProviderUnavailable
from oddsledger.integrations import providers
from oddsledger.integrations.action_network import ActionNetworkAdapter
from oddsledger.integrations.espn import EspnOddsAdapter, EspnScoreboardClient
from oddsledger.integrations.providers import parse_price, parse_start_time

GAME_DAY = date(2025, 1, 5)

ACTION_NETWORK_PAYLOAD = {
    "games": [
        {
            "id": 1001,
            "start_time": "2025-01-05T18:00:00.000Z",
            "teams": {"home": {"full_name": "Kansas City Chiefs"}, "away": {"full_name": "Buffalo Bills"}},
            "odds": {
                "spread": {"home_spread": -3.5, "home_odds": -115, "away_spread": 3.5},
                "total": {"total": 47.5, "over_odds": -105, "under_odds": -115},
                "moneyline": {"home_ml": -180, "away_ml": 155},
            },
        },
        {"id": 1002, "teams": {"home": {"full_name": "Denver Broncos"}}},
        {
            "id": 1003,
            "start_time": "2025-01-05T21:25:00Z",
            "teams": {"home": {"name": "Seattle Seahawks"}, "away": {"name": "Los Angeles Rams"}},
            "odds": {"moneyline": {"current": {"home_ml": "even", "away_ml": -120}}},
        },
    ]
}

ESPN_PAYLOAD = {
    "events": [
        {
            "id": "401671",
            "date": "2025-01-05T18:00Z",
            "status": {"type": {"state": "post", "name": "STATUS_FINAL"}},
            "competitions": [
                {
                    "competitors": [
                        {"homeAway": "home", "score": "27", "team": {"displayName": "Kansas City Chiefs"}},
                        {"homeAway": "away", "score": "24", "team": {"displayName": "Buffalo Bills"}},
                    ],
                    "odds": [
                        {
                            "spread": -3.5,
                            "overUnder": 47.5,
                            "homeTeamOdds": {"moneyLine": -180},
                            "awayTeamOdds": {"moneyLine": 155},
                        }
                    ],
                }
            ],
        },
        {
            "id": "401672",
            "date": "2025-01-05T21:25Z",
            "status": {"type": {"state": "pre", "name": "STATUS_SCHEDULED"}},
            "competitions": [{"competitors": [{"homeAway": "home", "team": {"displayName": "Seattle Seahawks"}}]}],
        },
    ]
}


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, body_is_json: bool = True) -> None:
        self.payload = payload
        self.status_code = status_code
        self.body_is_json = body_is_json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if not self.body_is_json:
            raise ValueError("not json")
        return self.payload


def _serve(monkeypatch, response: FakeResponse, seen: list | None = None) -> None:
    def fake_get(url, params=None, headers=None, timeout=None):
        if seen is not None:
            seen.append({"url": url, "params": params, "timeout": timeout})
        return response

    monkeypatch.setattr(providers.requests, "get", fake_get)


def test_action_network_parses_games_and_skips_malformed(monkeypatch) -> None:
    seen: list = []
    _serve(monkeypatch, FakeResponse(ACTION_NETWORK_PAYLOAD), seen)
    adapter = ActionNetworkAdapter("https://an.example/web/v2", timeout_sec=5)

    result = adapter.fetch_detailed("nfl", GAME_DAY)

    assert seen[0]["url"] == "https://an.example/web/v2/scoreboard/nfl"
    assert seen[0]["params"] == {"date": "20250105", "periods": "event"}
    assert seen[0]["timeout"] == (5, 5)
    assert result.skipped == 1
    assert [game.external_id for game in result.games] == ["an_1001", "an_1003"]

    chiefs = result.games[0]
    assert chiefs.provider == "action_network"
    assert chiefs.sport == "NFL"
    assert chiefs.commence_time == datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)
    assert chiefs.spread_home == Decimal("-3.5")
    assert chiefs.spread_home_price == -115
    assert chiefs.spread_away_price == -110
    assert chiefs.total_line == Decimal("47.5")
    assert chiefs.home_ml == -180
    assert chiefs.event_key == "NFL:2025-01-05:buffalo bills@kansas city chiefs"

    seahawks = result.games[1]
    assert seahawks.home_ml == 100
    assert seahawks.spread_home is None
    assert seahawks.spread_home_price is None
    assert seahawks.total_over_price is None


def test_espn_odds_mirror_home_spread_and_default_prices(monkeypatch) -> None:
    _serve(monkeypatch, FakeResponse(ESPN_PAYLOAD))
    adapter = EspnOddsAdapter("https://espn.example/sports", timeout_sec=5, default_juice=-110)

    games = adapter.fetch("NFL", GAME_DAY)

    assert len(games) == 1
    game = games[0]
    assert game.external_id == "espn_401671"
    assert game.spread_home == Decimal("-3.5")
    assert game.spread_away == Decimal("3.5")
    assert game.spread_home_price == game.spread_away_price == -110
    assert game.total_over_price == game.total_under_price == -110
    assert game.away_ml == 155
    assert game.event_key == "NFL:2025-01-05:buffalo bills@kansas city chiefs"


def test_empty_payload_raises_provider_empty(monkeypatch) -> None:
    _serve(monkeypatch, FakeResponse({"games": []}))
    with pytest.raises(ProviderEmpty):
        ActionNetworkAdapter("https://an.example", timeout_sec=5).fetch("NBA", GAME_DAY)


def test_all_records_malformed_raises_provider_empty_with_count(monkeypatch) -> None:
    _serve(monkeypatch, FakeResponse({"games": [{"id": 1}, "garbage"]}))
    with pytest.raises(ProviderEmpty) as excinfo:
        ActionNetworkAdapter("https://an.example", timeout_sec=5).fetch("NBA", GAME_DAY)
    assert excinfo.value.skipped == 2


def test_unsupported_sport_is_empty_not_unavailable() -> None:
    with pytest.raises(ProviderEmpty):
        EspnOddsAdapter("https://espn.example", timeout_sec=5).fetch("CRICKET", GAME_DAY)


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"games": []}, status_code=503),
        FakeResponse(body_is_json=False),
        FakeResponse(["not", "an", "object"]),
    ],
)
def test_transport_and_body_failures_raise_provider_unavailable(monkeypatch, response: FakeResponse) -> None:
    _serve(monkeypatch, response)
    with pytest.raises(ProviderUnavailable):
        ActionNetworkAdapter("https://an.example", timeout_sec=5).fetch("NFL", GAME_DAY)


def test_timeout_raises_provider_unavailable(monkeypatch) -> None:
    def fake_get(*_args, **_kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(providers.requests, "get", fake_get)
    with pytest.raises(ProviderUnavailable) as excinfo:
        EspnOddsAdapter("https://espn.example", timeout_sec=1).fetch("NFL", GAME_DAY)
    assert excinfo.value.provider == "espn"


def test_scoreboard_results_report_status_and_scores(monkeypatch) -> None:
    _serve(monkeypatch, FakeResponse(ESPN_PAYLOAD))
    client = EspnScoreboardClient("https://espn.example/sports", timeout_sec=5)

    results = client.fetch_results("NFL", GAME_DAY)

    assert len(results) == 1
    final = results[0]
    assert final.status == GameStatus.FINAL
    assert (final.home_score, final.away_score) == (27, 24)
    assert final.event_key == "NFL:2025-01-05:buffalo bills@kansas city chiefs"


def test_scoreboard_skips_malformed_events_and_keeps_good_ones(monkeypatch) -> None:
    final = ESPN_PAYLOAD["events"][0]
    payload = {
        "events": [
            {"id": "9", "date": "2025-01-05T18:00Z", "competitions": [{"competitors": ["garbage"]}]},
            {**final, "id": "10", "status": "final"},
            {"id": "11", "date": "2025-01-05T18:00Z", "competitions": "garbage"},
            final,
        ]
    }
    _serve(monkeypatch, FakeResponse(payload))
    client = EspnScoreboardClient("https://espn.example/sports", timeout_sec=5)

    results = client.fetch_results("NFL", GAME_DAY)

    by_id = {result.external_id: result for result in results}
    assert by_id["espn_401671"].status == GameStatus.FINAL
    assert by_id["espn_401671"].home_score == 27
    assert by_id["espn_10"].status == GameStatus.SCHEDULED
    assert by_id["espn_10"].home_score is None
    assert "espn_9" not in by_id and "espn_11" not in by_id


def test_parse_helpers() -> None:
    assert parse_price("+150", "price") == 150
    assert parse_price(0, "price", default=-110) == -110
    assert parse_price(None, "price") is None
    assert parse_start_time("2025-01-05T13:00:00-05:00") == datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)
