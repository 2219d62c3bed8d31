from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from oddsledger.config import get_settings
from oddsledger.domain.errors import ProviderEmpty, ProviderUnavailable, StoreWriteError
from oddsledger.domain.types import RawGameOdds
from oddsledger.integrations.providers import FetchResult
from oddsledger.models import OddsSnapshot
from oddsledger.services import collector
from oddsledger.services.collector import collect_snapshots, in_season

NOW = datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc)


def _raw(provider: str, sport: str, index: int) -> RawGameOdds:
    return RawGameOdds(
        provider=provider,
        sport=sport,
        external_id=f"{provider}_{sport}_{index}",
        commence_time=NOW + timedelta(hours=6),
        home_team=f"{sport} Home {index}",
        away_team=f"{sport} Away {index}",
        spread_home=Decimal("-2.5"),
        spread_home_price=-110,
        spread_away=Decimal("2.5"),
        spread_away_price=-110,
    )


class FakeAdapter:
    def __init__(self, name: str, games: dict[str, int] | None = None, error: Exception | None = None) -> None:
        self.name = name
        self.games = games or {}
        self.error = error
        self.calls: list[tuple[str, date]] = []

    def fetch_detailed(self, sport: str, day: date) -> FetchResult:
        self.calls.append((sport, day))
        if self.error is not None:
            raise self.error
        count = self.games.get(sport, 0)
        if count == 0:
            raise ProviderEmpty(self.name, sport)
        return FetchResult(
            provider=self.name,
            sport=sport,
            games=[_raw(self.name, sport, index) for index in range(count)],
            skipped=1,
        )


def _settings(**overrides):
    base = replace(
        get_settings(),
        sports=("NFL", "NBA", "MLB"),
        season_windows={"NFL": (9, 2), "NBA": (10, 6), "MLB": (3, 10)},
        primary_provider="action_network",
        backup_provider="espn",
        snapshot_batch_size=100,
        collect_deadline_sec=30.0,
    )
    return replace(base, **overrides)


@pytest.mark.parametrize(
    "sport, month, expected",
    [("NFL", 1, True), ("NFL", 9, True), ("NFL", 6, False), ("MLB", 7, True), ("MLB", 1, False), ("XFL", 5, True)],
)
def test_in_season_handles_windows_that_wrap_the_year(sport: str, month: int, expected: bool) -> None:
    windows = {"NFL": (9, 2), "MLB": (3, 10)}
    assert in_season(sport, month, windows) is expected


def test_primary_results_are_saved_and_off_season_sports_skipped(session: Session) -> None:
    primary = FakeAdapter("action_network", {"NFL": 2, "NBA": 3})
    backup = FakeAdapter("espn", {"NFL": 5, "NBA": 5})

    summary = collect_snapshots(session, _settings(), now=NOW, adapters={"action_network": primary, "espn": backup})

    assert summary["skipped_sports"] == ["MLB"]
    assert summary["total"] == 5
    assert summary["timed_out"] is False
    assert summary["per_sport"]["NFL"]["saved"] == 2
    assert summary["per_sport"]["NFL"]["provider"] == "action_network"
    assert summary["per_sport"]["NFL"]["fallback_used"] is False
    assert summary["per_sport"]["NBA"]["errors"] == 1
    assert backup.calls == []
    assert {call[0] for call in primary.calls} == {"NFL", "NBA"}
    assert session.execute(select(func.count()).select_from(OddsSnapshot)).scalar_one() == 5


def test_backup_is_used_when_primary_is_empty_or_down(session: Session) -> None:
    primary = FakeAdapter("action_network", {"NFL": 0})
    backup = FakeAdapter("espn", {"NFL": 2})

    summary = collect_snapshots(
        session,
        _settings(sports=("NFL",)),
        now=NOW,
        adapters={"action_network": primary, "espn": backup},
    )

    assert summary["per_sport"]["NFL"]["provider"] == "espn"
    assert summary["per_sport"]["NFL"]["fallback_used"] is True
    assert summary["per_sport"]["NFL"]["saved"] == 2

    down = FakeAdapter("action_network", error=ProviderUnavailable("action_network", "NFL", "503"))
    summary = collect_snapshots(
        session,
        _settings(sports=("NFL",)),
        now=NOW + timedelta(minutes=10),
        adapters={"action_network": down, "espn": backup},
    )
    assert summary["per_sport"]["NFL"]["provider"] == "espn"


def test_empty_slate_on_both_providers_is_not_an_error(session: Session) -> None:
    primary = FakeAdapter("action_network", {"NBA": 1})
    backup = FakeAdapter("espn", {"NBA": 1})

    summary = collect_snapshots(session, _settings(), now=NOW, adapters={"action_network": primary, "espn": backup})

    nfl = summary["per_sport"]["NFL"]
    assert nfl["saved"] == 0
    assert nfl["errors"] == 0
    assert nfl["provider"] is None
    assert "error" not in nfl
    assert summary["per_sport"]["NBA"]["saved"] == 1


def test_unavailable_primary_with_empty_backup_is_a_failure(session: Session) -> None:
    primary = FakeAdapter("action_network", error=ProviderUnavailable("action_network", "NFL", "503"))
    backup = FakeAdapter("espn", {"NBA": 1})

    summary = collect_snapshots(
        session,
        _settings(sports=("NFL",)),
        now=NOW,
        adapters={"action_network": primary, "espn": backup},
    )

    nfl = summary["per_sport"]["NFL"]
    assert nfl["saved"] == 0
    assert nfl["errors"] == 1
    assert "action_network unavailable" in nfl["error"]


def test_unexpected_adapter_crash_is_contained(session: Session) -> None:
    primary = FakeAdapter("action_network", error=RuntimeError("boom"))

    summary = collect_snapshots(
        session,
        _settings(sports=("NFL",), backup_provider="none"),
        now=NOW,
        adapters={"action_network": primary},
    )

    assert summary["per_sport"]["NFL"]["error"] == "boom"
    assert summary["total"] == 0


def test_rows_are_written_in_bounded_batches(session: Session, monkeypatch) -> None:
    sizes: list[int] = []
    real_append_batch = collector.append_batch

    def recording_append_batch(session_, rows, captured_at):
        sizes.append(len(rows))
        return real_append_batch(session_, rows, captured_at)

    monkeypatch.setattr(collector, "append_batch", recording_append_batch)
    primary = FakeAdapter("action_network", {"NBA": 5})

    summary = collect_snapshots(
        session,
        _settings(sports=("NBA",), snapshot_batch_size=2),
        now=NOW,
        adapters={"action_network": primary, "espn": FakeAdapter("espn")},
    )

    assert sizes == [2, 2, 1]
    assert summary["per_sport"]["NBA"]["saved"] == 5


def test_failed_batch_is_counted_and_later_batches_still_run(session: Session, monkeypatch) -> None:
    real_append_batch = collector.append_batch
    calls = {"count": 0}

    def flaky_append_batch(session_, rows, captured_at):
        calls["count"] += 1
        if calls["count"] == 1:
            raise StoreWriteError("disk full")
        return real_append_batch(session_, rows, captured_at)

    monkeypatch.setattr(collector, "append_batch", flaky_append_batch)
    primary = FakeAdapter("action_network", {"NBA": 3})

    summary = collect_snapshots(
        session,
        _settings(sports=("NBA",), snapshot_batch_size=2),
        now=NOW,
        adapters={"action_network": primary, "espn": FakeAdapter("espn")},
    )

    assert summary["per_sport"]["NBA"]["saved"] == 1
    assert summary["per_sport"]["NBA"]["errors"] == 1 + 2


def test_repeated_runs_do_not_duplicate_openings(session: Session) -> None:
    adapters = {"action_network": FakeAdapter("action_network", {"NFL": 2}), "espn": FakeAdapter("espn")}
    settings = _settings(sports=("NFL",))

    collect_snapshots(session, settings, now=NOW, adapters=adapters)
    replay = collect_snapshots(session, settings, now=NOW, adapters=adapters)
    collect_snapshots(session, settings, now=NOW + timedelta(minutes=15), adapters=adapters)

    assert replay["per_sport"]["NFL"]["skipped_duplicates"] == 2
    openings = session.execute(
        select(func.count()).select_from(OddsSnapshot).where(OddsSnapshot.is_opening.is_(True))
    ).scalar_one()
    assert openings == 2
    assert session.execute(select(func.count()).select_from(OddsSnapshot)).scalar_one() == 4


def test_deadline_stops_the_run_without_raising(session: Session) -> None:
    summary = collect_snapshots(
        session,
        _settings(sports=("NFL",), collect_deadline_sec=0.0),
        now=NOW,
        adapters={"action_network": FakeAdapter("action_network", {"NFL": 1}), "espn": FakeAdapter("espn")},
    )

    assert summary["timed_out"] is True
    assert summary["total"] == 0
    assert summary["per_sport"]["NFL"]["error"] == "deadline exceeded"
