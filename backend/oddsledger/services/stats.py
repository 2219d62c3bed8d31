from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from oddsledger.core.math import quantize_cents, to_decimal
from oddsledger.domain.enums import PickStatus
from oddsledger.models import Capper, Game, Pick

SETTLED_STATUSES = (PickStatus.WIN.value, PickStatus.LOSS.value, PickStatus.PUSH.value)


def next_streak(current: int, outcome: PickStatus | str) -> int:
    outcome = PickStatus(outcome)
    if outcome == PickStatus.WIN:
        return current + 1 if current >= 0 else 1
    if outcome == PickStatus.LOSS:
        return current - 1 if current <= 0 else -1
    if outcome == PickStatus.PUSH:
        return current
    raise ValueError(f"cannot advance a streak with outcome '{outcome}'")


def apply_settlement(
    session: Session,
    capper_id: int,
    outcome: PickStatus | str,
    profit_loss: Decimal,
    stake: Decimal,
    settled_at: datetime,
) -> Capper:
    """Fold one settled pick into the capper's running totals.

    The capper row is locked for the update so concurrent graders serialize
    on it. The caller owns the transaction.
    """
    capper = session.execute(select(Capper).where(Capper.id == capper_id).with_for_update()).scalar_one()
    outcome = PickStatus(outcome)
    if outcome == PickStatus.WIN:
        capper.wins += 1
    elif outcome == PickStatus.LOSS:
        capper.losses += 1
    elif outcome == PickStatus.PUSH:
        capper.pushes += 1
    else:
        raise ValueError(f"cannot apply outcome '{outcome}'")

    capper.units = quantize_cents(to_decimal(capper.units) + to_decimal(profit_loss))
    if outcome != PickStatus.PUSH:
        capper.units_wagered = quantize_cents(to_decimal(capper.units_wagered) + to_decimal(stake))
    capper.current_streak = next_streak(capper.current_streak, outcome)
    capper.last_settled_at = settled_at
    return capper


def derive_stats(picks: list[Pick]) -> dict[str, object]:
    stats: dict[str, object] = {
        "wins": 0,
        "losses": 0,
        "pushes": 0,
        "units": Decimal("0.00"),
        "units_wagered": Decimal("0.00"),
        "current_streak": 0,
        "last_settled_at": None,
    }
    streak = 0
    for pick in picks:
        outcome = PickStatus(pick.status)
        key = {PickStatus.WIN: "wins", PickStatus.LOSS: "losses", PickStatus.PUSH: "pushes"}[outcome]
        stats[key] = int(stats[key]) + 1
        stats["units"] = quantize_cents(stats["units"] + to_decimal(pick.profit_loss or 0))
        if outcome != PickStatus.PUSH:
            stats["units_wagered"] = quantize_cents(stats["units_wagered"] + to_decimal(pick.stake))
        streak = next_streak(streak, outcome)
        if pick.settled_at is not None and (
            stats["last_settled_at"] is None or pick.settled_at > stats["last_settled_at"]
        ):
            stats["last_settled_at"] = pick.settled_at
    stats["current_streak"] = streak
    return stats


def recompute_capper_stats(session: Session, capper_id: int, *, persist: bool = True) -> dict[str, object]:
    """Rebuild a capper's aggregate from the pick ledger.

    Picks are replayed in game order, the same order grading applies them, so
    the streak comes out identical to the incremental path.
    """
    capper = session.execute(select(Capper).where(Capper.id == capper_id).with_for_update()).scalar_one()
    picks = list(
        session.execute(
            select(Pick)
            .join(Game, Game.id == Pick.game_id)
            .where(Pick.capper_id == capper_id, Pick.status.in_(SETTLED_STATUSES))
            .order_by(Game.commence_time.asc(), Pick.id.asc())
        )
        .scalars()
        .all()
    )
    stats = derive_stats(picks)
    if persist:
        capper.wins = int(stats["wins"])
        capper.losses = int(stats["losses"])
        capper.pushes = int(stats["pushes"])
        capper.units = stats["units"]
        capper.units_wagered = stats["units_wagered"]
        capper.current_streak = int(stats["current_streak"])
        capper.last_settled_at = stats["last_settled_at"]
        session.commit()
    return {"capper_id": capper_id, "slug": capper.slug, **stats}
