# billsplit/services/money.py
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Dict, Hashable, List, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    # ROUND_HALF_UP on Decimal rounds half away from zero
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def distribute_remainder(total: Number, shares: int) -> List[Decimal]:
    """Split `total` into `shares` cent amounts that sum exactly to `total`.

    The first `remainder_cents` shares get one extra cent, so callers control
    who absorbs the remainder through the order they pass participants in.
    Negative totals floor toward minus infinity, which keeps the same
    guarantee when spreading negative rounding drift.
    """
    if shares < 1:
        raise ValueError("shares must be at least 1")
    total = round2(total)
    base = (total / shares).quantize(CENT, rounding=ROUND_FLOOR)
    remainder_cents = int(((total - base * shares) * 100).to_integral_value(rounding=ROUND_HALF_UP))
    return [base + CENT if i < remainder_cents else base for i in range(shares)]


def absorb_drift(amounts: Dict[Hashable, Decimal], target: Number) -> Dict[Hashable, Decimal]:
    if not amounts:
        return {}
    drift = round2(target) - sum(amounts.values(), ZERO)
    if drift == 0:
        return dict(amounts)
    # zero entries stay at zero unless everything is zero
    keys = [key for key, amount in amounts.items() if amount != 0] or list(amounts)
    corrections = dict(zip(keys, distribute_remainder(drift, len(keys))))
    return {key: round2(amount + corrections.get(key, ZERO)) for key, amount in amounts.items()}
