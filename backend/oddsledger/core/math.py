from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from oddsledger.domain.enums import BetType, PickStatus, Side

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)  # type: ignore[arg-type]


def quantize_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_american(american_odds: int) -> int:
    american_odds = int(american_odds)
    if abs(american_odds) < 100:
        raise ValueError("american_odds must be <= -100 or >= 100")
    return american_odds


def payout_multiplier(american_odds: int) -> Decimal:
    american_odds = validate_american(american_odds)
    if american_odds > 0:
        return Decimal(american_odds) / HUNDRED
    return HUNDRED / Decimal(abs(american_odds))


def american_to_decimal(american_odds: int) -> Decimal:
    return Decimal(1) + payout_multiplier(american_odds)


def american_to_implied_prob(american_odds: int) -> Decimal:
    american_odds = validate_american(american_odds)
    if american_odds > 0:
        return HUNDRED / (Decimal(american_odds) + HUNDRED)
    magnitude = Decimal(abs(american_odds))
    return magnitude / (magnitude + HUNDRED)


def profit_loss(outcome: PickStatus, stake: Decimal, american_odds: int) -> Decimal:
    stake = to_decimal(stake)
    if stake <= 0:
        raise ValueError("stake must be positive")
    if outcome == PickStatus.PUSH:
        return Decimal("0.00")
    if outcome == PickStatus.LOSS:
        return quantize_cents(-stake)
    if outcome == PickStatus.WIN:
        return quantize_cents(stake * payout_multiplier(american_odds))
    raise ValueError(f"cannot compute profit for outcome '{outcome}'")


def closing_side_line(
    selection: Side,
    spread_home: Decimal | None,
    spread_away: Decimal | None,
) -> Decimal | None:
    if selection == Side.HOME:
        return spread_home
    if spread_away is not None:
        return spread_away
    return -spread_home if spread_home is not None else None


def spread_clv(line_at_pick: Decimal, closing_line: Decimal) -> Decimal:
    # Both lines are from the selected side's perspective; more points is better.
    return quantize_cents(to_decimal(line_at_pick) - to_decimal(closing_line))


def total_clv(selection: Side, line_at_pick: Decimal, closing_total: Decimal) -> Decimal:
    line_at_pick = to_decimal(line_at_pick)
    closing_total = to_decimal(closing_total)
    if selection == Side.OVER:
        return quantize_cents(closing_total - line_at_pick)
    if selection == Side.UNDER:
        return quantize_cents(line_at_pick - closing_total)
    raise ValueError(f"total CLV needs OVER or UNDER, got '{selection}'")


def moneyline_clv(price_at_pick: int, closing_price: int) -> Decimal:
    edge = american_to_implied_prob(closing_price) - american_to_implied_prob(price_at_pick)
    return quantize_cents(edge * HUNDRED)


def clv_value(
    bet_type: BetType,
    selection: Side,
    *,
    line_at_pick: Decimal | None,
    price_at_pick: int,
    closing_line: Decimal | None,
    closing_price: int | None,
) -> Decimal | None:
    if bet_type == BetType.SPREAD:
        if line_at_pick is None or closing_line is None:
            return None
        return spread_clv(line_at_pick, closing_line)
    if bet_type == BetType.TOTAL:
        if line_at_pick is None or closing_line is None:
            return None
        return total_clv(selection, line_at_pick, closing_line)
    if bet_type == BetType.MONEYLINE:
        if closing_price is None:
            return None
        return moneyline_clv(price_at_pick, closing_price)
    raise ValueError(f"Unsupported bet_type '{bet_type}'")
