from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from oddsledger.config import Settings
from oddsledger.core.math import clv_value, closing_side_line
from oddsledger.core.settlement import parse_bet_type, parse_selection, sides_for
from oddsledger.domain.enums import BetType, PickStatus, Side
from oddsledger.domain.errors import UnsettleablePick
from oddsledger.models import Game, OddsSnapshot, Pick
from oddsledger.services.snapshots import closing_snapshots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClosingQuote:
    provider: str
    line: Decimal | None
    price: int | None


def closing_quote(snapshot: OddsSnapshot, bet_type: BetType, selection: Side) -> ClosingQuote | None:
    if bet_type == BetType.SPREAD:
        line = closing_side_line(selection, snapshot.spread_home, snapshot.spread_away)
        price = snapshot.spread_home_price if selection == Side.HOME else snapshot.spread_away_price
        return ClosingQuote(snapshot.provider, line, price) if line is not None else None
    if bet_type == BetType.TOTAL:
        if snapshot.total_line is None:
            return None
        price = snapshot.total_over_price if selection == Side.OVER else snapshot.total_under_price
        return ClosingQuote(snapshot.provider, snapshot.total_line, price)
    if bet_type == BetType.MONEYLINE:
        price = snapshot.home_ml if selection == Side.HOME else snapshot.away_ml
        return ClosingQuote(snapshot.provider, None, price) if price is not None else None
    return None


def provider_order(providers: list[str], preferred: tuple[str, ...]) -> list[str]:
    ranked = [provider for provider in preferred if provider in providers]
    return ranked + sorted(provider for provider in providers if provider not in ranked)


def select_closing_quote(
    snapshots: list[OddsSnapshot],
    bet_type: BetType,
    selection: Side,
    preferred: tuple[str, ...],
) -> ClosingQuote | None:
    by_provider = {snapshot.provider: snapshot for snapshot in snapshots if snapshot.is_closing}
    for provider in provider_order(list(by_provider), preferred):
        quote = closing_quote(by_provider[provider], bet_type, selection)
        if quote is not None:
            return quote
    return None


def compute_clv(session: Session, pick: Pick, settings: Settings, now: datetime | None = None) -> Decimal | None:
    try:
        bet_type = parse_bet_type(pick.bet_type)
        selection = parse_selection(pick.selection, sides_for(bet_type), bet_type)
    except UnsettleablePick as exc:
        logger.info("clv: pick %s skipped: %s", pick.id, exc)
        return None

    quote = select_closing_quote(
        closing_snapshots(session, [pick.game_id]),
        bet_type,
        selection,
        settings.closing_providers,
    )
    if quote is None:
        return None

    price_at_pick = pick.price_at_pick if pick.price_at_pick is not None else settings.default_juice
    try:
        value = clv_value(
            bet_type,
            selection,
            line_at_pick=pick.line_at_pick,
            price_at_pick=price_at_pick,
            closing_line=quote.line,
            closing_price=quote.price,
        )
    except ValueError as exc:
        logger.info("clv: pick %s not computable: %s", pick.id, exc)
        return None
    if value is None:
        return None

    pick.clv = value
    pick.closing_line = quote.line
    pick.closing_price = quote.price
    pick.closing_provider = quote.provider
    pick.clv_computed_at = now or datetime.now(timezone.utc)
    return value


def compute_clv_for_picks(
    session: Session,
    settings: Settings,
    force: bool = False,
    now: datetime | None = None,
) -> dict[str, int]:
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(Pick)
        .join(Game, Pick.game_id == Game.id)
        .where(or_(Pick.status != PickStatus.PENDING.value, Game.commence_time <= now))
        .order_by(Game.commence_time.asc(), Pick.id.asc())
    )
    if not force:
        # Games older than the lookback will not get a closing line anymore.
        stmt = stmt.where(
            Pick.clv_computed_at.is_(None),
            Game.commence_time >= now - timedelta(days=settings.results_lookback_days),
        )

    picks = session.execute(stmt).scalars().all()
    summary = {"processed": len(picks), "updated": 0, "skipped_no_close": 0}
    for pick in picks:
        if compute_clv(session, pick, settings, now=now) is None:
            summary["skipped_no_close"] += 1
        else:
            summary["updated"] += 1
    session.commit()
    return summary
