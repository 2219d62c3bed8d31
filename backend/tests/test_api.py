from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import Session

from oddsledger.api import jobs
from oddsledger.api.snapshots import game_line_history, game_lines, list_games
from oddsledger.domain.types import RawGameOdds
from oddsledger.services.snapshots import append_batch

KICKOFF = datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)


def _raw(spread: str) -> RawGameOdds:
    return RawGameOdds(
        provider="espn",
        sport="NFL",
        external_id="espn_1",
        commence_time=KICKOFF,
        home_team="Kansas City Chiefs",
        away_team="Buffalo Bills",
        spread_home=Decimal(spread),
        spread_away=-Decimal(spread),
    )


def test_job_endpoints_delegate_to_the_run_log(session: Session, monkeypatch) -> None:
    calls: list = []
    monkeypatch.setattr(
        jobs,
        "run_and_log",
        lambda db, settings, run_type, sports=None: calls.append((run_type, sports)) or {"ok": run_type},
    )

    assert jobs.collect_snapshots_job(sport=["nba"], db=session) == {"ok": "collect"}
    assert jobs.grade_picks_job(db=session) == {"ok": "grade"}
    assert calls == [("collect", ["nba"]), ("grade", None)]


def test_line_endpoints_show_opening_and_latest(session: Session) -> None:
    append_batch(session, [_raw("-3")], KICKOFF - timedelta(hours=5))
    append_batch(session, [_raw("-4.5")], KICKOFF - timedelta(hours=1))
    game_id = list_games(sport="nfl", limit=10, db=session)[0]["id"]

    lines = game_lines(game_id=game_id, provider="espn", db=session)
    history = game_line_history(game_id=game_id, provider=None, db=session)

    assert lines["opening"]["spread_home"] == -3.0
    assert lines["opening"]["is_opening"] is True
    assert lines["latest"]["spread_home"] == -4.5
    assert [row["spread_home"] for row in history["snapshots"]] == [-3.0, -4.5]


def test_line_endpoints_404_for_unknown_game(session: Session) -> None:
    with pytest.raises(HTTPException) as excinfo:
        game_lines(game_id=999, provider="espn", db=session)
    assert excinfo.value.status_code == 404


def test_cli_without_a_command_prints_help(capsys) -> None:
    from oddsledger.cli import main

    assert main([]) == 0
    assert "recompute-stats" in capsys.readouterr().out
