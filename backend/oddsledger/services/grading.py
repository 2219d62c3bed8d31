from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager

from oddsledger.config import Settings
from oddsledger.core.settlement import Settlement, settle, tie_policy_for
from oddsledger.domain.enums import PickStatus
from oddsledger.domain.errors import UnsettleablePick
from oddsledger.integrations.espn import EspnScoreboardClient
from oddsledger.models import Game, Pick
from oddsledger.services.clv import compute_clv_for_picks
from oddsledger.services.results import refresh_results
from oddsledger.services.snapshots import mark_closing_for_started_games
from oddsledger.services.stats import apply_settlement

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 50


def find_pending_picks(session: Session, *, now: datetime, limit: int | None = None) -> list[Pick]:
    """Pending picks whose game has started, oldest game first."""
    stmt = (
        select(Pick)
        .join(Game, Pick.game_id == Game.id)
        .options(contains_eager(Pick.game))
        .where(Pick.status == PickStatus.PENDING.value, Game.commence_time <= now)
        .order_by(Game.commence_time.asc(), Pick.id.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


def settle_pick(pick: Pick, game: Game, settings: Settings) -> Settlement:
    return settle(
        bet_type=pick.bet_type,
        selection=pick.selection,
        line=pick.line_at_pick,
        price=pick.price_at_pick,
        stake=pick.stake,
        home_score=int(game.home_score),
        away_score=int(game.away_score),
        tie_policy=tie_policy_for(pick.sport or game.sport, settings.moneyline_tie_policy),
        default_price=settings.default_juice,
    )


def record_settlement(session: Session, pick: Pick, game: Game, result: Settlement, settled_at: datetime) -> bool:
    """Move one pick out of pending and fold it into the capper's stats.

    The status change is a compare-and-set on ``status = 'pending'`` so a pick
    graded by an overlapping run is never counted twice. Commits on success.
    """
    changed = session.execute(
        update(Pick)
        .where(Pick.id == pick.id, Pick.status == PickStatus.PENDING.value)
        .values(
            status=result.outcome.value,
            settled_at=settled_at,
            profit_loss=result.profit_loss,
            home_score=game.home_score,
            away_score=game.away_score,
            grade_note=result.note,
        )
    )
    if changed.rowcount != 1:
        session.rollback()
        return False
    apply_settlement(session, pick.capper_id, result.outcome, result.profit_loss, pick.stake, settled_at)
    session.commit()
    return True


def _note_error(summary: dict, pick_id: int, reason: str) -> None:
    errors = summary["errors"]
    if len(errors) < MAX_REPORTED_ERRORS:
        errors.append({"pickId": pick_id, "reason": reason})


def grade_pending_picks(
    session: Session,
    settings: Settings,
    *,
    now: datetime | None = None,
    score_client: EspnScoreboardClient | None = None,
) -> dict:
    started = time.monotonic()
    deadline = started + settings.grade_deadline_sec
    now = now or datetime.now(timezone.utc)
    summary: dict = {
        "pendingPicks": 0,
        "graded": 0,
        "failed": 0,
        "durationMs": 0,
        "notFinal": 0,
        "unsettleable": 0,
        "alreadySettled": 0,
        "clvComputed": 0,
        "closingMarked": 0,
        "resultsUpdated": 0,
        "resultsUnmatched": 0,
        "timedOut": False,
        "errors": [],
    }

    try:
        results = refresh_results(session, settings, now=now, client=score_client)
        summary["resultsUpdated"] = results["results_updated"]
        summary["resultsUnmatched"] = len(results["unmatched"])
        if results["errors"]:
            summary["resultErrors"] = results["errors"]
    except Exception:  # noqa: BLE001
        session.rollback()
        logger.exception("grade: score refresh failed")

    try:
        summary["closingMarked"] = mark_closing_for_started_games(session, now)
    except SQLAlchemyError:
        session.rollback()
        logger.exception("grade: closing backfill failed")

    picks = find_pending_picks(session, now=now, limit=settings.grade_batch_limit)
    summary["pendingPicks"] = len(picks)

    for pick in picks:
        if time.monotonic() >= deadline:
            summary["timedOut"] = True
            logger.warning("grade: deadline reached with picks left; next run continues")
            break
        game = pick.game
        if not game.is_final:
            summary["notFinal"] += 1
            continue
        try:
            result = settle_pick(pick, game, settings)
        except UnsettleablePick as exc:
            summary["unsettleable"] += 1
            summary["failed"] += 1
            _note_error(summary, pick.id, str(exc))
            logger.warning("grade: pick %s left pending: %s", pick.id, exc)
            continue
        try:
            if record_settlement(session, pick, game, result, now):
                summary["graded"] += 1
            else:
                summary["alreadySettled"] += 1
        except SQLAlchemyError as exc:
            session.rollback()
            summary["failed"] += 1
            _note_error(summary, pick.id, str(exc))
            logger.exception("grade: could not store settlement for pick %s", pick.id)

    try:
        clv = compute_clv_for_picks(session, settings, now=now)
        summary["clvComputed"] = clv["updated"]
    except SQLAlchemyError:
        session.rollback()
        logger.exception("grade: CLV pass failed")

    summary["durationMs"] = int((time.monotonic() - started) * 1000)
    logger.info(
        "grade: pending=%s graded=%s failed=%s not_final=%s",
        summary["pendingPicks"],
        summary["graded"],
        summary["failed"],
        summary["notFinal"],
    )
    return summary
