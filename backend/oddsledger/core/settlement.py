"""Pure grading rules.

Nothing in this module touches the database or the network: given the same
pick terms and final score it always returns the same settlement.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from oddsledger.core.math import profit_loss, to_decimal, validate_american
from oddsledger.domain.enums import BetType, PickStatus, Side, TiePolicy
from oddsledger.domain.errors import UnsettleablePick

TEAM_SIDES = (Side.HOME, Side.AWAY)
TOTAL_SIDES = (Side.OVER, Side.UNDER)


@dataclass(frozen=True, slots=True)
class Settlement:
    outcome: PickStatus
    profit_loss: Decimal
    price_used: int
    note: str


def _compare(value: Decimal) -> PickStatus:
    if value > 0:
        return PickStatus.WIN
    if value < 0:
        return PickStatus.LOSS
    return PickStatus.PUSH


def parse_bet_type(bet_type: str) -> BetType:
    try:
        return BetType(str(bet_type).strip().lower())
    except ValueError as exc:
        raise UnsettleablePick(f"unknown bet_type '{bet_type}'") from exc


def parse_selection(selection: str, allowed: tuple[Side, ...], bet_type: BetType) -> Side:
    try:
        side = Side(str(selection).strip().upper())
    except ValueError as exc:
        raise UnsettleablePick(f"unknown selection '{selection}'") from exc
    if side not in allowed:
        raise UnsettleablePick(f"selection '{side}' is not valid for {bet_type} bets")
    return side


def sides_for(bet_type: BetType) -> tuple[Side, ...]:
    return TOTAL_SIDES if bet_type == BetType.TOTAL else TEAM_SIDES


def grade_spread(selection: Side, line: Decimal, home_score: int, away_score: int) -> tuple[PickStatus, str]:
    margin = Decimal(home_score - away_score)
    side_margin = margin if selection == Side.HOME else -margin
    adjusted = side_margin + line
    if adjusted > 0:
        note = f"Covered by {abs(adjusted)}"
    elif adjusted < 0:
        note = f"Missed by {abs(adjusted)}"
    else:
        note = "Push - exact spread"
    return _compare(adjusted), note


def grade_total(selection: Side, line: Decimal, home_score: int, away_score: int) -> tuple[PickStatus, str]:
    actual = Decimal(home_score + away_score)
    difference = actual - line if selection == Side.OVER else line - actual
    outcome = _compare(difference)
    if outcome == PickStatus.PUSH:
        return outcome, "Push - exact total"
    return outcome, f"Total {actual} vs {line}"


def grade_moneyline(
    selection: Side,
    home_score: int,
    away_score: int,
    tie_policy: TiePolicy,
) -> tuple[PickStatus, str]:
    own, other = (home_score, away_score) if selection == Side.HOME else (away_score, home_score)
    if own > other:
        return PickStatus.WIN, "Selected side won"
    if own < other:
        return PickStatus.LOSS, "Selected side lost"
    if tie_policy == TiePolicy.PUSH:
        return PickStatus.PUSH, "Tie game"
    if tie_policy == TiePolicy.LOSS:
        return PickStatus.LOSS, "Tie game"
    raise UnsettleablePick(f"tied final {home_score}-{away_score} is not settleable for this sport")


def settle(
    *,
    bet_type: str,
    selection: str,
    line: Decimal | float | None,
    price: int | None,
    stake: Decimal,
    home_score: int,
    away_score: int,
    tie_policy: TiePolicy = TiePolicy.EXCLUDE,
    default_price: int = -110,
) -> Settlement:
    """Grade one pick against a final score.

    ``line`` is read from the selected side's perspective: a home favourite
    at -3.5 is stored as -3.5, the away underdog in the same game as +3.5.
    Raises ``UnsettleablePick`` instead of guessing when the terms cannot be
    interpreted.
    """
    kind = parse_bet_type(bet_type)
    if home_score < 0 or away_score < 0:
        raise UnsettleablePick("final scores must be non-negative")

    price_used = default_price if price is None else price
    try:
        validate_american(price_used)
    except ValueError as exc:
        raise UnsettleablePick(f"invalid price {price_used}") from exc

    if kind == BetType.MONEYLINE:
        side = parse_selection(selection, TEAM_SIDES, kind)
        outcome, note = grade_moneyline(side, home_score, away_score, tie_policy)
    else:
        if line is None:
            raise UnsettleablePick(f"{kind} pick has no line recorded")
        line_value = to_decimal(line)
        if kind == BetType.SPREAD:
            side = parse_selection(selection, TEAM_SIDES, kind)
            outcome, note = grade_spread(side, line_value, home_score, away_score)
        else:
            side = parse_selection(selection, TOTAL_SIDES, kind)
            outcome, note = grade_total(side, line_value, home_score, away_score)

    try:
        amount = profit_loss(outcome, to_decimal(stake), price_used)
    except ValueError as exc:
        raise UnsettleablePick(str(exc)) from exc
    return Settlement(outcome=outcome, profit_loss=amount, price_used=price_used, note=note)


def tie_policy_for(sport: str, policies: dict[str, str]) -> TiePolicy:
    raw = policies.get(sport.upper())
    if raw is None:
        return TiePolicy.EXCLUDE
    return TiePolicy(raw)
