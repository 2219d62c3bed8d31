from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, exists, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from oddsledger.domain.errors import StoreWriteError
from oddsledger.domain.types import SAME_GAME_WINDOW, RawGameOdds, same_matchup
from oddsledger.models import Game, OddsSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = tuple(column.key for column in OddsSnapshot.__table__.columns if column.key != "id")


@dataclass(frozen=True)
class AppendResult:
    inserted: bool
    opening: bool = False
    duplicate: bool = False


@dataclass
class BatchResult:
    inserted: int = 0
    openings: int = 0
    duplicates: int = 0

    def add(self, outcome: AppendResult) -> None:
        if outcome.duplicate:
            self.duplicates += 1
            return
        self.inserted += 1
        if outcome.opening:
            self.openings += 1


def find_matching_game(session: Session, raw: RawGameOdds) -> Game | None:
    """A stored game for the same fixture whose team names are spelled differently."""
    nearby = session.execute(
        select(Game).where(
            Game.sport == raw.sport,
            Game.commence_time >= raw.commence_time - SAME_GAME_WINDOW,
            Game.commence_time <= raw.commence_time + SAME_GAME_WINDOW,
        )
    ).scalars().all()
    candidates = [
        game for game in nearby if same_matchup(game.home_team, game.away_team, raw.home_team, raw.away_team)
    ]
    return candidates[0] if len(candidates) == 1 else None


def upsert_game(session: Session, raw: RawGameOdds) -> Game:
    key = raw.event_key
    game = session.execute(select(Game).where(Game.event_key == key)).scalar_one_or_none()
    if game is None:
        game = find_matching_game(session, raw)
    if game is not None:
        return game
    try:
        with session.begin_nested():
            game = Game(
                sport=raw.sport,
                event_key=key,
                commence_time=raw.commence_time,
                home_team=raw.home_team,
                away_team=raw.away_team,
            )
            session.add(game)
    except IntegrityError:
        # Another collector created the game between our read and write.
        game = session.execute(select(Game).where(Game.event_key == key)).scalar_one()
    return game


def snapshot_from_raw(raw: RawGameOdds, game_id: int, captured_at: datetime, is_opening: bool) -> OddsSnapshot:
    return OddsSnapshot(
        game_id=game_id,
        provider=raw.provider,
        captured_at=captured_at,
        sport=raw.sport,
        scheduled_date=raw.scheduled_date,
        external_id=raw.external_id,
        home_team=raw.home_team,
        away_team=raw.away_team,
        spread_home=raw.spread_home,
        spread_home_price=raw.spread_home_price,
        spread_away=raw.spread_away,
        spread_away_price=raw.spread_away_price,
        total_line=raw.total_line,
        total_over_price=raw.total_over_price,
        total_under_price=raw.total_under_price,
        home_ml=raw.home_ml,
        away_ml=raw.away_ml,
        is_opening=is_opening,
        is_closing=False,
    )


def existing_opening_pairs(session: Session, pairs: Iterable[tuple[int, str]]) -> set[tuple[int, str]]:
    wanted = set(pairs)
    if not wanted:
        return set()
    game_ids = {game_id for game_id, _provider in wanted}
    rows = session.execute(
        select(OddsSnapshot.game_id, OddsSnapshot.provider).where(
            OddsSnapshot.game_id.in_(game_ids),
            OddsSnapshot.is_opening.is_(True),
        )
    ).all()
    return {(row.game_id, row.provider) for row in rows} & wanted


def exists_opening(session: Session, game_id: int, provider: str) -> bool:
    return bool(existing_opening_pairs(session, [(game_id, provider)]))


def _capture_exists(session: Session, snapshot: OddsSnapshot) -> bool:
    stmt = select(
        exists().where(
            OddsSnapshot.game_id == snapshot.game_id,
            OddsSnapshot.provider == snapshot.provider,
            OddsSnapshot.captured_at == snapshot.captured_at,
        )
    )
    return bool(session.execute(stmt).scalar())


def _clone(snapshot: OddsSnapshot, **overrides: object) -> OddsSnapshot:
    values = {key: getattr(snapshot, key) for key in SNAPSHOT_COLUMNS}
    values.update(overrides)
    return OddsSnapshot(**values)


def _insert(session: Session, snapshot: OddsSnapshot) -> AppendResult:
    try:
        with session.begin_nested():
            session.add(snapshot)
        return AppendResult(inserted=True, opening=snapshot.is_opening)
    except IntegrityError:
        if _capture_exists(session, snapshot):
            logger.debug(
                "duplicate snapshot game=%s provider=%s captured_at=%s",
                snapshot.game_id,
                snapshot.provider,
                snapshot.captured_at,
            )
            return AppendResult(inserted=False, duplicate=True)
        if not snapshot.is_opening:
            raise
    # Lost the opening race to a concurrent writer; keep the row as a regular snapshot.
    logger.info("opening already claimed for game=%s provider=%s", snapshot.game_id, snapshot.provider)
    retry = _clone(snapshot, is_opening=False)
    with session.begin_nested():
        session.add(retry)
    return AppendResult(inserted=True, opening=False)


def append(session: Session, snapshot: OddsSnapshot) -> AppendResult:
    snapshot.is_opening = not exists_opening(session, snapshot.game_id, snapshot.provider)
    return _insert(session, snapshot)


def append_batch(session: Session, rows: Sequence[RawGameOdds], captured_at: datetime) -> BatchResult:
    """Write one batch of normalized records and commit it.

    Raises ``StoreWriteError`` when the batch as a whole cannot be stored; the
    session is rolled back so earlier committed batches are unaffected.
    """
    result = BatchResult()
    try:
        games = [upsert_game(session, raw) for raw in rows]
        session.flush()
        opened = existing_opening_pairs(session, [(game.id, raw.provider) for game, raw in zip(games, rows)])
        for game, raw in zip(games, rows):
            key = (game.id, raw.provider)
            outcome = _insert(session, snapshot_from_raw(raw, game.id, captured_at, key not in opened))
            if outcome.opening:
                opened.add(key)
            result.add(outcome)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreWriteError(f"failed to store {len(rows)} snapshots: {exc}") from exc
    return result


def latest_for(
    session: Session,
    game_id: int,
    provider: str,
    before: datetime | None = None,
) -> OddsSnapshot | None:
    stmt = select(OddsSnapshot).where(OddsSnapshot.game_id == game_id, OddsSnapshot.provider == provider)
    if before is not None:
        stmt = stmt.where(OddsSnapshot.captured_at <= before)
    stmt = stmt.order_by(OddsSnapshot.captured_at.desc(), OddsSnapshot.id.desc()).limit(1)
    return session.execute(stmt).scalars().first()


def opening_for(session: Session, game_id: int, provider: str) -> OddsSnapshot | None:
    return (
        session.execute(
            select(OddsSnapshot)
            .where(OddsSnapshot.game_id == game_id, OddsSnapshot.provider == provider)
            .order_by(OddsSnapshot.captured_at.asc(), OddsSnapshot.id.asc())
            .limit(1)
        )
        .scalars()
        .first()
    )


def line_history(session: Session, game_id: int, provider: str | None = None) -> list[OddsSnapshot]:
    stmt = select(OddsSnapshot).where(OddsSnapshot.game_id == game_id)
    if provider is not None:
        stmt = stmt.where(OddsSnapshot.provider == provider)
    stmt = stmt.order_by(OddsSnapshot.provider.asc(), OddsSnapshot.captured_at.asc(), OddsSnapshot.id.asc())
    return list(session.execute(stmt).scalars().all())


def mark_closing(session: Session, game_id: int, provider: str) -> bool:
    """Flag the last pre-start snapshot of (game, provider) as closing.

    Falls back to the latest snapshot overall when none was captured before
    the start. Returns True when a flag changed.
    """
    game = session.get(Game, game_id)
    if game is None:
        return False
    target = latest_for(session, game_id, provider, before=game.commence_time)
    if target is None:
        target = latest_for(session, game_id, provider)
    if target is None:
        return False
    if target.is_closing:
        return False

    session.execute(
        update(OddsSnapshot)
        .where(
            OddsSnapshot.game_id == game_id,
            OddsSnapshot.provider == provider,
            OddsSnapshot.is_closing.is_(True),
        )
        .values(is_closing=False)
    )
    target.is_closing = True
    session.flush()
    return True


def mark_closing_for_started_games(session: Session, now: datetime) -> int:
    closing = aliased(OddsSnapshot)
    has_closing = exists().where(
        and_(
            closing.game_id == OddsSnapshot.game_id,
            closing.provider == OddsSnapshot.provider,
            closing.is_closing.is_(True),
        )
    )
    pairs = session.execute(
        select(OddsSnapshot.game_id, OddsSnapshot.provider)
        .join(Game, Game.id == OddsSnapshot.game_id)
        .where(Game.commence_time <= now, ~has_closing)
        .distinct()
        .order_by(OddsSnapshot.game_id.asc(), OddsSnapshot.provider.asc())
    ).all()

    marked = 0
    for game_id, provider in pairs:
        if mark_closing(session, game_id, provider):
            marked += 1
    session.commit()
    if marked:
        logger.info("marked %s closing snapshots", marked)
    return marked


def closing_snapshots(session: Session, game_ids: Sequence[int]) -> list[OddsSnapshot]:
    if not game_ids:
        return []
    return list(
        session.execute(
            select(OddsSnapshot)
            .where(OddsSnapshot.game_id.in_(list(game_ids)), OddsSnapshot.is_closing.is_(True))
            .order_by(OddsSnapshot.game_id.asc(), OddsSnapshot.provider.asc())
        )
        .scalars()
        .all()
    )
