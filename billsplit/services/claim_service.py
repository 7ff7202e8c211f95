# billsplit/services/claim_service.py
import logging
from decimal import Decimal
from fractions import Fraction
from typing import Dict, List, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from billsplit.db import execute_write, store_call
from billsplit.errors import Conflict, NotFound, OverClaim, PermissionDenied, SplitNotReady
from billsplit.models.item import Claim, LineItem
from billsplit.models.split import Participant, Split, SplitStatus, SplitStrategy
from billsplit.models.user import User
from billsplit.services.claims import ClaimState, ClaimTracker, ItemState
from billsplit.services.money import round2
from billsplit.services.receipt_service import validate_line_item
from billsplit.services.split_service import (
    get_split, identity, participant_for_user, participants_of, require_creator, require_member,
    settle_if_complete,
)
from billsplit.services.tax_tip import distribute_tax_tip, finalize_obligations

log = logging.getLogger(__name__)


def items_of(s: Session, split: Split) -> List[LineItem]:
    return list(s.exec(select(LineItem).where(LineItem.split_id == split.id).order_by(LineItem.id)).all())


def claims_of(s: Session, items: List[LineItem]) -> List[Claim]:
    ids = [i.id for i in items]
    if not ids:
        return []
    return list(s.exec(select(Claim).where(Claim.item_id.in_(ids)).order_by(Claim.id)).all())


def _tracker(items: List[LineItem], claims: List[Claim]) -> ClaimTracker:
    return ClaimTracker(
        [ItemState(i.id, i.unit_price, i.quantity) for i in items],
        [ClaimState(c.item_id, c.participant_id, c.quantity_claimed, c.share_count) for c in claims],
    )


def load_tracker(s: Session, split: Split) -> Tuple[ClaimTracker, List[LineItem], List[Claim]]:
    items = items_of(s, split)
    claims = claims_of(s, items)
    return _tracker(items, claims), items, claims


def _item_in(items: List[LineItem], item_id: int, split: Split) -> LineItem:
    for item in items:
        if item.id == item_id:
            return item
    raise NotFound(f"item {item_id} is not in split {split.id}", item_id=item_id)


def _open_for_claims(split: Split) -> None:
    if split.strategy != SplitStrategy.ITEMIZED:
        raise SplitNotReady("only itemized splits have items to claim")
    if split.finalized or split.status == SplitStatus.SETTLED:
        raise SplitNotReady("claims are closed for this split")


def _claimant(s: Session, split: Split, user: User) -> Participant:
    participant = participant_for_user(s, split, user)
    if participant is None:
        raise PermissionDenied("you are not part of this split")
    return participant


def _bump_version(s: Session, item: LineItem) -> None:
    """Compare-and-swap on the item's claim pool; lose the race, lose the write."""
    t = LineItem.__table__
    matched = execute_write(s, update(t).where(t.c.id == item.id, t.c.version == item.version)
                            .values(version=t.c.version + 1))
    if not matched:
        log.warning("claim pool of item %s changed underneath us (version %s)", item.id, item.version)
        raise Conflict("someone else just claimed this item, refresh and try again", item_id=item.id)


def remaining_quantity(s: Session, split_id: int, item_id: int) -> Fraction:
    split = get_split(s, split_id)
    with store_call(s, "remaining quantity"):
        tracker, items, _ = load_tracker(s, split)
        _item_in(items, item_id, split)
        return tracker.remaining_quantity(item_id)


def upsert_claim(s: Session, split_id: int, item_id: int, user: User,
                 quantity: int, share_count: int = 1) -> Claim:
    split = get_split(s, split_id)
    _open_for_claims(split)
    with store_call(s, "claim item"):
        participant = _claimant(s, split, user)
        tracker, items, claims = load_tracker(s, split)
        item = _item_in(items, item_id, split)
        try:
            tracker.upsert_claim(item_id, participant.id, quantity, share_count)
        except OverClaim:
            log.info("participant %s over-claimed item %s: wanted %s", participant.id, item_id, quantity)
            raise

        _bump_version(s, item)
        claim = next((c for c in claims if c.item_id == item_id and c.participant_id == participant.id), None)
        if claim is None:
            claim = Claim(item_id=item_id, participant_id=participant.id)
        claim.quantity_claimed = quantity
        claim.share_count = share_count
        s.add(claim)
        s.commit()
        s.refresh(claim)
    log.info("participant %s claims %s x item %s (shared %s ways)", participant.id, quantity, item_id, share_count)
    return claim


def release_claim(s: Session, split_id: int, item_id: int, user: User) -> None:
    split = get_split(s, split_id)
    _open_for_claims(split)
    with store_call(s, "release claim"):
        participant = _claimant(s, split, user)
        _, items, claims = load_tracker(s, split)
        item = _item_in(items, item_id, split)
        claim = next((c for c in claims if c.item_id == item_id and c.participant_id == participant.id), None)
        if claim is None:
            return
        _bump_version(s, item)
        s.delete(claim)
        s.commit()
    log.info("participant %s released item %s", participant.id, item_id)


def edit_line_item(s: Session, split_id: int, item_id: int, user: User,
                   name: str, unit_price, quantity: int) -> LineItem:
    split = get_split(s, split_id)
    require_creator(split, user, "edit its items")
    if split.strategy != SplitStrategy.ITEMIZED:
        raise SplitNotReady("only itemized splits have items")
    if split.status == SplitStatus.SETTLED:
        raise SplitNotReady("this split is settled, its items can no longer change")
    validate_line_item(name, unit_price, quantity)
    with store_call(s, "edit item"):
        tracker, items, claims = load_tracker(s, split)
        item = _item_in(items, item_id, split)
        in_use = item.quantity - tracker.remaining_quantity(item_id)
        biggest = max((c.quantity_claimed for c in claims if c.item_id == item_id), default=0)
        if quantity < in_use or quantity < biggest:
            raise OverClaim(f"{item.name} already has {in_use} claimed", item_id=item_id,
                            requested=quantity, remaining=in_use)

        _bump_version(s, item)
        item.name = name.strip()
        item.unit_price = round2(unit_price)
        item.quantity = quantity
        item.version += 1
        s.add(item)
        split.total_amount = round2(sum(i.line_total for i in items) + split.tax_amount + split.tip_amount)
        s.add(split)
        if split.finalized:
            tracker = _tracker(items, claims)
            if not tracker.all_claimed():
                raise SplitNotReady("this edit would leave items unclaimed on a finalized split")
            _write_obligations(s, split, tracker)
        s.commit()
        s.refresh(item)
    log.info("item %s in split %s edited: %s x %s", item_id, split_id, quantity, item.unit_price)
    return item


def _write_obligations(s: Session, split: Split, tracker: ClaimTracker) -> Dict[int, Decimal]:
    participants = participants_of(s, split)
    amounts = finalize_obligations(split.tax_amount, split.tip_amount, tracker.subtotals(), tracker.receipt_subtotal(),
                                   split.tax_tip_method, [p.id for p in participants])
    for p in participants:
        p.amount_owed = amounts.get(p.id, round2(0))
        s.add(p)
    return amounts


def finalize_split(s: Session, split_id: int, user: User) -> Split:
    """Close claiming and persist exact per-participant obligations."""
    split = get_split(s, split_id)
    require_creator(split, user, "finalize it")
    if split.strategy != SplitStrategy.ITEMIZED or split.finalized:
        raise Conflict("this split is already final")
    with store_call(s, "finalize split"):
        tracker, _, _ = load_tracker(s, split)
        unclaimed = tracker.unclaimed_items()
        if unclaimed:
            raise SplitNotReady(f"{len(unclaimed)} item(s) still unclaimed",
                                unclaimed=", ".join(str(i.id) for i in unclaimed))
        t = Split.__table__
        matched = execute_write(s, update(t).where(t.c.id == split.id, t.c.finalized == False)  # noqa: E712
                                .values(finalized=True))
        if not matched:
            raise Conflict("this split was finalized by another request")
        amounts = _write_obligations(s, split, tracker)
        # payments may have arrived while people were still claiming
        settle_if_complete(s, split)
        s.commit()
        s.refresh(split)
    log.info("split %s finalized: %s", split.id, {k: str(v) for k, v in amounts.items()})
    return split


def claim_summary(s: Session, split_id: int, user: User) -> Dict:
    split = get_split(s, split_id)
    require_member(s, split, user)
    with store_call(s, "claim summary"):
        tracker, items, claims = load_tracker(s, split)
        names = {p.id: identity(s, p)[1] for p in participants_of(s, split)}
    breakdown = distribute_tax_tip(split.tax_amount, split.tip_amount, tracker.subtotals(), tracker.receipt_subtotal(),
                                   split.tax_tip_method, list(names))
    return {
        "split_id": split.id,
        "finalized": split.finalized,
        "receipt_subtotal": str(round2(tracker.receipt_subtotal())),
        "tax": str(split.tax_amount),
        "tip": str(split.tip_amount),
        "tax_tip_method": split.tax_tip_method.value,
        "all_claimed": tracker.all_claimed(),
        "items": [
            {
                "id": item.id, "name": item.name, "unit_price": str(item.unit_price),
                "quantity": item.quantity, "line_total": str(item.line_total),
                "remaining": str(tracker.remaining_quantity(item.id)),
                "fully_claimed": tracker.is_fully_claimed(item.id),
                "claims": [
                    {"participant_id": c.participant_id, "name": names.get(c.participant_id),
                     "quantity": c.quantity_claimed, "share_count": c.share_count}
                    for c in claims if c.item_id == item.id
                ],
            }
            for item in items
        ],
        "breakdown": {
            str(pid): {"name": names.get(pid), **{k: str(v) for k, v in b._asdict().items()}}
            for pid, b in breakdown.items()
        },
    }
