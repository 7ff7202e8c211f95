# billsplit/services/allocation.py
from decimal import Decimal
from typing import Dict, Hashable, Mapping, Optional, Sequence

from billsplit.errors import AllocationMismatch
from billsplit.models.split import SplitStrategy
from billsplit.services.money import CENT, ZERO, Number, absorb_drift, distribute_remainder, round2, to_money

HUNDRED = Decimal("100")


def allocate(
    total: Number,
    participants: Sequence[Hashable],
    strategy: SplitStrategy,
    values: Optional[Mapping[Hashable, Number]] = None,
) -> Dict[Hashable, Decimal]:
    """Turn a total into a per-participant amount map, in participant order.

    `values` holds amounts for CUSTOM and percentages (0-100) for PERCENTAGE.
    The result always sums to `total` to the cent; anything that cannot be
    made to do so raises AllocationMismatch.
    """
    total = round2(total)
    if not participants:
        raise AllocationMismatch("at least one participant is required", expected=total, actual=ZERO)
    strategy = SplitStrategy(strategy)

    if strategy == SplitStrategy.EQUAL:
        return dict(zip(participants, distribute_remainder(total, len(participants))))
    if strategy == SplitStrategy.CUSTOM:
        return _custom(total, participants, _require_values(participants, values))
    if strategy == SplitStrategy.PERCENTAGE:
        return _percentage(total, participants, _require_values(participants, values))
    raise ValueError(f"{strategy.value} splits are allocated from item claims, not a flat total")


def _require_values(participants, values) -> Dict[Hashable, Decimal]:
    values = values or {}
    missing = [p for p in participants if p not in values]
    unknown = [k for k in values if k not in participants]
    if missing or unknown:
        raise AllocationMismatch(
            "every participant needs exactly one value",
            missing=", ".join(map(str, missing)),
            unknown=", ".join(map(str, unknown)),
        )
    return {p: to_money(values[p]) for p in participants}


def _custom(total, participants, values) -> Dict[Hashable, Decimal]:
    amounts = {p: round2(values[p]) for p in participants}
    negative = [p for p, amount in amounts.items() if amount < 0]
    if negative:
        raise AllocationMismatch("custom amounts cannot be negative", negative=", ".join(map(str, negative)))
    actual = sum(amounts.values(), ZERO)
    difference = round2(actual - total)
    if abs(actual - total) >= CENT:
        raise AllocationMismatch(
            f"custom amounts add up to {actual}, expected {total}",
            expected=total,
            actual=actual,
            difference=difference,
        )
    return amounts


def _percentage(total, participants, values) -> Dict[Hashable, Decimal]:
    out_of_range = [p for p in participants if not ZERO <= values[p] <= HUNDRED]
    if out_of_range:
        raise AllocationMismatch(
            "percentages must be between 0 and 100",
            out_of_range=", ".join(map(str, out_of_range)),
        )
    pct_sum = sum(values.values(), ZERO)
    if abs(pct_sum - HUNDRED) >= CENT:
        difference = round2(pct_sum - HUNDRED)
        # positive when there is still money left to hand out
        unassigned = round2(total * (HUNDRED - pct_sum) / HUNDRED)
        word = "short of" if difference < 0 else "over"
        raise AllocationMismatch(
            f"percentages add up to {pct_sum}, {abs(difference)} points {word} 100",
            expected=HUNDRED,
            actual=pct_sum,
            difference=difference,
            unassigned_amount=unassigned,
        )
    amounts = {p: round2(total * values[p] / HUNDRED) for p in participants}
    return absorb_drift(amounts, total)
