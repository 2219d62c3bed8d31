from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from oddsledger.config import Settings
from oddsledger.domain.enums import GameStatus, PickStatus
from oddsledger.domain.errors import ProviderUnavailable
from oddsledger.domain.types import SAME_GAME_WINDOW, GameResult, same_matchup
from oddsledger.integrations.espn import EspnScoreboardClient
from oddsledger.models import Game, Pick

logger = logging.getLogger(__name__)


def build_score_client(settings: Settings) -> EspnScoreboardClient:
    return EspnScoreboardClient(
        settings.espn_base_url,
        timeout_sec=settings.provider_timeout_sec,
        default_juice=settings.default_juice,
    )


def games_awaiting_results(session: Session, now: datetime, lookback_days: int) -> list[Game]:
    window_start = now - timedelta(days=lookback_days)
    return list(
        session.execute(
            select(Game)
            .join(Pick, Pick.game_id == Game.id)
            .where(
                Pick.status == PickStatus.PENDING.value,
                Game.status != GameStatus.FINAL.value,
                Game.commence_time <= now,
                Game.commence_time >= window_start,
            )
            .distinct()
            .order_by(Game.commence_time.asc(), Game.id.asc())
        )
        .scalars()
        .all()
    )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _scoreboard_days(game: Game) -> tuple[date, date]:
    # The scoreboard is keyed by US local date, so late UTC starts sit on the previous day.
    day = _utc(game.commence_time).date()
    return day, day - timedelta(days=1)


def match_result(game: Game, by_key: dict[str, GameResult], results: list[GameResult]) -> GameResult | None:
    """Find the score row for a game even when the feeds spell a team differently."""
    exact = by_key.get(game.event_key)
    if exact is not None:
        return exact
    commence = _utc(game.commence_time)
    candidates = [
        result
        for result in results
        if abs(_utc(result.commence_time) - commence) <= SAME_GAME_WINDOW
        and same_matchup(game.home_team, game.away_team, result.home_team, result.away_team)
    ]
    if len(candidates) == 1:
        return candidates[0]
    return None


def apply_result(game: Game, result: GameResult) -> bool:
    changed = False
    if game.status != result.status.value:
        game.status = result.status.value
        changed = True
    if result.home_score is not None and game.home_score != result.home_score:
        game.home_score = result.home_score
        changed = True
    if result.away_score is not None and game.away_score != result.away_score:
        game.away_score = result.away_score
        changed = True
    return changed


def refresh_results(
    session: Session,
    settings: Settings,
    now: datetime | None = None,
    client: EspnScoreboardClient | None = None,
) -> dict[str, object]:
    now = now or datetime.now(timezone.utc)
    games = games_awaiting_results(session, now, settings.results_lookback_days)
    summary: dict[str, object] = {
        "games_checked": len(games),
        "results_updated": 0,
        "unmatched": [],
        "errors": {},
    }
    if not games:
        return summary

    client = client or build_score_client(settings)
    by_sport: dict[str, list[Game]] = defaultdict(list)
    for game in games:
        by_sport[game.sport].append(game)

    errors: dict[str, str] = {}
    unmatched: list[int] = []
    for sport, sport_games in sorted(by_sport.items()):
        days = sorted({day for game in sport_games for day in _scoreboard_days(game)})
        try:
            results: list[GameResult] = []
            for day in days:
                results.extend(client.fetch_results(sport, day))
            by_key = {result.event_key: result for result in results}

            for game in sport_games:
                result = match_result(game, by_key, results)
                if result is None:
                    unmatched.append(game.id)
                    logger.info("results: no %s score row for game %s (%s)", sport, game.id, game.event_key)
                    continue
                if apply_result(game, result):
                    summary["results_updated"] = int(summary["results_updated"]) + 1
            session.commit()
        except ProviderUnavailable as exc:
            logger.warning("results: %s", exc)
            errors[sport] = str(exc)
        except Exception as exc:  # noqa: BLE001
            session.rollback()
            logger.exception("results: %s score refresh failed", sport)
            errors[sport] = str(exc)

    summary["unmatched"] = unmatched
    summary["errors"] = errors
    return summary
