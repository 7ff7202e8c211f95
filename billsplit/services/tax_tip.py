# billsplit/services/tax_tip.py
from decimal import Decimal
from typing import Dict, Hashable, Mapping, NamedTuple, Optional, Sequence

from billsplit.models.split import TaxTipMethod
from billsplit.services.money import ZERO, Number, absorb_drift, distribute_remainder, round2, to_money


class Breakdown(NamedTuple):
    subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal


def _proportion(subtotal: Decimal, receipt_subtotal: Decimal) -> Decimal:
    if receipt_subtotal == 0:
        return ZERO
    return subtotal / receipt_subtotal


def _equal(tax: Decimal, tip: Decimal, subtotals: Mapping[Hashable, Number],
           participants: Sequence[Hashable]) -> Dict[Hashable, Breakdown]:
    if not participants:
        return {}
    taxes = distribute_remainder(tax, len(participants))
    tips = distribute_remainder(tip, len(participants))
    out = {}
    for who, tax_share, tip_share in zip(participants, taxes, tips):
        subtotal = round2(subtotals.get(who, ZERO))
        out[who] = Breakdown(subtotal, tax_share, tip_share, subtotal + tax_share + tip_share)
    return out


def distribute_tax_tip(
    tax: Number,
    tip: Number,
    subtotals: Mapping[Hashable, Number],
    receipt_subtotal: Number,
    method: TaxTipMethod = TaxTipMethod.PROPORTIONAL,
    participants: Optional[Sequence[Hashable]] = None,
) -> Dict[Hashable, Breakdown]:
    """Spread receipt-level tax and tip over the people on a receipt.

    PROPORTIONAL goes by each claimant's share of the receipt subtotal.
    Shares are rounded per claimant, so the column totals may drift a few
    cents from tax + tip, and tax and tip on unclaimed items stay with nobody.

    EQUAL gives every participant (claimant or not, in the order given) the
    same cut of tax and tip, leftover cents first; those columns sum exactly.
    """
    tax, tip, receipt_subtotal = to_money(tax), to_money(tip), to_money(receipt_subtotal)
    if TaxTipMethod(method) == TaxTipMethod.EQUAL:
        return _equal(tax, tip, subtotals, list(participants if participants is not None else subtotals))

    out = {}
    for claimant, subtotal in subtotals.items():
        subtotal = to_money(subtotal)
        p = _proportion(subtotal, receipt_subtotal)
        tax_share = round2(tax * p)
        tip_share = round2(tip * p)
        out[claimant] = Breakdown(round2(subtotal), tax_share, tip_share, round2(subtotal) + tax_share + tip_share)
    return out


def finalize_obligations(
    tax: Number,
    tip: Number,
    subtotals: Mapping[Hashable, Number],
    receipt_subtotal: Number,
    method: TaxTipMethod = TaxTipMethod.PROPORTIONAL,
    participants: Optional[Sequence[Hashable]] = None,
) -> Dict[Hashable, Decimal]:
    tax, tip, receipt_subtotal = to_money(tax), to_money(tip), to_money(receipt_subtotal)
    breakdown = distribute_tax_tip(tax, tip, subtotals, receipt_subtotal, method, participants)
    claimed = sum((to_money(s) for s in subtotals.values()), ZERO)
    if TaxTipMethod(method) == TaxTipMethod.EQUAL:
        target = round2(claimed + tax + tip) if breakdown else ZERO
    else:
        target = round2(claimed + (tax + tip) * _proportion(claimed, receipt_subtotal))
    return absorb_drift({c: b.total for c, b in breakdown.items()}, target)
