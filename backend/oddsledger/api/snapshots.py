from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from oddsledger.db import get_db
from oddsledger.models import Game, OddsSnapshot
from oddsledger.services.snapshots import latest_for, line_history, opening_for

router = APIRouter(tags=["snapshots"])


def _serialize(row: OddsSnapshot) -> dict[str, object]:
    return {
        "id": row.id,
        "provider": row.provider,
        "captured_at": row.captured_at,
        "spread_home": float(row.spread_home) if row.spread_home is not None else None,
        "spread_home_price": row.spread_home_price,
        "spread_away": float(row.spread_away) if row.spread_away is not None else None,
        "spread_away_price": row.spread_away_price,
        "total_line": float(row.total_line) if row.total_line is not None else None,
        "total_over_price": row.total_over_price,
        "total_under_price": row.total_under_price,
        "home_ml": row.home_ml,
        "away_ml": row.away_ml,
        "is_opening": row.is_opening,
        "is_closing": row.is_closing,
    }


def _game_or_404(db: Session, game_id: int) -> Game:
    game = db.get(Game, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail=f"game {game_id} not found")
    return game


@router.get("/games")
def list_games(
    sport: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[dict[str, object]]:
    stmt = select(Game)
    if sport:
        stmt = stmt.where(Game.sport == sport.upper())
    rows = db.execute(stmt.order_by(Game.commence_time.desc(), Game.id.desc()).limit(limit)).scalars().all()
    return [
        {
            "id": game.id,
            "event_key": game.event_key,
            "sport": game.sport,
            "commence_time": game.commence_time,
            "home_team": game.home_team,
            "away_team": game.away_team,
            "status": game.status,
            "home_score": game.home_score,
            "away_score": game.away_score,
        }
        for game in rows
    ]


@router.get("/games/{game_id}/lines")
def game_lines(game_id: int, provider: str = Query(...), db: Session = Depends(get_db)) -> dict[str, object]:
    _game_or_404(db, game_id)
    latest = latest_for(db, game_id, provider)
    opening = opening_for(db, game_id, provider)
    if latest is None:
        raise HTTPException(status_code=404, detail=f"no {provider} snapshots for game {game_id}")
    return {
        "game_id": game_id,
        "provider": provider,
        "opening": _serialize(opening) if opening is not None else None,
        "latest": _serialize(latest),
    }


@router.get("/games/{game_id}/history")
def game_line_history(
    game_id: int,
    provider: str | None = Query(None),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    _game_or_404(db, game_id)
    return {
        "game_id": game_id,
        "snapshots": [_serialize(row) for row in line_history(db, game_id, provider)],
    }
