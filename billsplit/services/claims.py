"""
In-memory claim bookkeeping for itemized splits.

Each line item has one quantity pool. A claim of `quantity` units with a
`share_count` of N consumes quantity / N units of that pool and is charged
unit_price * quantity / N, so N people sharing a single unit each hold a
(1, N) claim and together consume exactly that unit.
"""
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Dict, Hashable, Iterable, List, Tuple

from billsplit.errors import InvalidClaim, NotFound, OverClaim
from billsplit.services.money import ZERO


@dataclass(frozen=True)
class ItemState:
    id: Hashable
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class ClaimState:
    item_id: Hashable
    claimant: Hashable
    quantity: int
    share_count: int = 1

    @property
    def consumed(self) -> Fraction:
        return Fraction(self.quantity, self.share_count)


class ClaimTracker:
    def __init__(self, items: Iterable[ItemState], claims: Iterable[ClaimState] = ()):
        self._items: Dict[Hashable, ItemState] = {item.id: item for item in items}
        self._claims: Dict[Tuple[Hashable, Hashable], ClaimState] = {}
        for claim in claims:
            self._item(claim.item_id)
            self._claims[(claim.item_id, claim.claimant)] = claim

    def _item(self, item_id) -> ItemState:
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFound(f"item {item_id} is not on this receipt", item_id=item_id) from None

    @property
    def items(self) -> List[ItemState]:
        return list(self._items.values())

    def claims_for(self, item_id) -> List[ClaimState]:
        return [c for (iid, _), c in self._claims.items() if iid == item_id]

    def claim(self, item_id, claimant):
        return self._claims.get((item_id, claimant))

    def remaining_quantity(self, item_id) -> Fraction:
        item = self._item(item_id)
        used = sum((c.consumed for c in self.claims_for(item_id)), Fraction(0))
        return Fraction(item.quantity) - used

    def is_fully_claimed(self, item_id) -> bool:
        return self.remaining_quantity(item_id) == 0

    def unclaimed_items(self) -> List[ItemState]:
        return [item for item in self._items.values() if not self.is_fully_claimed(item.id)]

    def all_claimed(self) -> bool:
        return not self.unclaimed_items()

    def upsert_claim(self, item_id, claimant, quantity: int, share_count: int = 1) -> ClaimState:
        item = self._item(item_id)
        if quantity < 1 or share_count < 1:
            raise InvalidClaim("quantity and share count must both be at least 1",
                               quantity=quantity, share_count=share_count)
        if quantity > item.quantity:
            raise OverClaim(f"only {item.quantity} on the receipt", item_id=item_id,
                            requested=quantity, remaining=self.remaining_quantity(item_id))

        new = ClaimState(item_id, claimant, quantity, share_count)
        previous = self._claims.get((item_id, claimant))
        # the claimant's own previous claim goes back into the pool first
        available = self.remaining_quantity(item_id) + (previous.consumed if previous else 0)
        if new.consumed > available:
            raise OverClaim(
                f"requested {new.consumed} of {item_id} but only {available} left",
                item_id=item_id,
                requested=new.consumed,
                remaining=available,
            )
        self._claims[(item_id, claimant)] = new
        return new

    def release_claim(self, item_id, claimant) -> None:
        self._item(item_id)
        self._claims.pop((item_id, claimant), None)

    def claimed_amount(self, claim: ClaimState) -> Decimal:
        return self._item(claim.item_id).unit_price * claim.quantity / claim.share_count

    def subtotal_for(self, claimant) -> Decimal:
        return sum((self.claimed_amount(c) for (_, who), c in self._claims.items() if who == claimant), ZERO)

    def subtotals(self) -> Dict[Hashable, Decimal]:
        out: Dict[Hashable, Decimal] = {}
        for (_, who), claim in self._claims.items():
            out[who] = out.get(who, ZERO) + self.claimed_amount(claim)
        return out

    def receipt_subtotal(self) -> Decimal:
        return sum((item.line_total for item in self._items.values()), ZERO)
