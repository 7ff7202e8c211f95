# billsplit/services/split_service.py
import logging
import os
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from billsplit.db import execute_write, store_call
from billsplit.errors import InvalidSplit, NotFound, PermissionDenied, SplitNotReady, StoreUnavailable
from billsplit.models.item import Claim, LineItem
from billsplit.models.payment import PaymentEvent
from billsplit.models.schemas import ParticipantIn, ReceiptSplitCreate, SplitCreate
from billsplit.models.split import (
    Participant, ParticipantRole, ParticipantStatus, Split, SplitStatus, SplitStrategy,
)
from billsplit.models.user import User
from billsplit.services.allocation import allocate
from billsplit.services.money import ZERO, round2
from billsplit.services.receipt_service import validate_receipt
from billsplit.services.settlement_service import (
    ParticipantLedger, PaymentRecord, SettlementSummary, reconcile,
)

log = logging.getLogger(__name__)

MAX_TITLE = 50
CREATOR_KEY = "creator"


def default_currency() -> str:
    return os.environ.get("DEFAULT_CURRENCY", "AUD")


def _clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidSplit("title is required")
    if len(title) > MAX_TITLE:
        raise InvalidSplit(f"title must be {MAX_TITLE} characters or less")
    return title


def _check_participants(s: Session, creator: User, participants: List[ParticipantIn]) -> None:
    if not participants:
        raise InvalidSplit("a split needs at least one other participant")
    seen_users = {creator.id}
    seen_emails = {creator.email.lower()} if creator.email else set()
    for p in participants:
        if p.user_id is not None:
            if p.user_id in seen_users:
                raise InvalidSplit("each person can only be in a split once", user_id=p.user_id)
            if s.get(User, p.user_id) is None:
                raise NotFound(f"user {p.user_id} not found", user_id=p.user_id)
            seen_users.add(p.user_id)
        elif not (p.name or "").strip():
            raise InvalidSplit("people without an account need a name")
        email = (p.email or "").strip().lower()
        if email:
            if email in seen_emails:
                raise InvalidSplit("each person can only be in a split once", email=email)
            seen_emails.add(email)


def _participant_row(p: ParticipantIn, amount: Decimal) -> Participant:
    return Participant(
        user_id=p.user_id,
        external_name=None if p.user_id else p.name.strip(),
        external_email=(p.email or "").strip().lower() or None,
        external_phone=p.phone,
        role=ParticipantRole.OWER,
        amount_owed=amount,
    )


def _persist(s: Session, split: Split, rows: List, what: str) -> Split:
    """Write the split, then its dependents; undo the split if they fail."""
    with store_call(s, what):
        s.add(split); s.commit(); s.refresh(split)
    try:
        for row in rows:
            row.split_id = split.id
            s.add(row)
        s.commit()
    except SQLAlchemyError as e:
        log.exception("%s failed after split %s was written, removing it", what, split.id)
        s.rollback()
        with store_call(s, f"rollback of {what}"):
            s.delete(split)
            s.commit()
        raise StoreUnavailable(f"{what} failed, nothing was saved") from e
    s.refresh(split)
    return split


def create_split(s: Session, creator: User, data: SplitCreate) -> Split:
    title = _clean_title(data.title)
    total = round2(data.total_amount)
    if total <= 0:
        raise InvalidSplit("total must be greater than zero")
    if data.strategy == SplitStrategy.ITEMIZED:
        raise InvalidSplit("itemized splits are created from a receipt")
    _check_participants(s, creator, data.participants)

    keys = [f"p{i}" for i in range(len(data.participants))]
    values = {k: p.value for k, p in zip(keys, data.participants) if p.value is not None}
    if data.include_creator:
        # the creator goes first so any leftover cent lands on them
        keys.insert(0, CREATOR_KEY)
        if data.creator_value is not None:
            values[CREATOR_KEY] = data.creator_value
    amounts = allocate(total, keys, data.strategy, values if data.strategy != SplitStrategy.EQUAL else None)

    split = Split(
        creator_id=creator.id, title=title, description=data.description,
        total_amount=total, currency=data.currency or default_currency(),
        strategy=data.strategy, finalized=True,
    )
    rows = [Participant(user_id=creator.id, role=ParticipantRole.CREATOR,
                        amount_owed=amounts.get(CREATOR_KEY, ZERO))]
    rows += [_participant_row(p, amounts[f"p{i}"]) for i, p in enumerate(data.participants)]
    split = _persist(s, split, rows, "create split")
    log.info("split %s created by user %s: %s %s %s across %d", split.id, creator.id,
             split.strategy.value, split.total_amount, split.currency, len(rows))
    return split


def create_itemized_split(s: Session, creator: User, data: ReceiptSplitCreate) -> Split:
    title = _clean_title(data.title)
    receipt = data.receipt
    subtotal = validate_receipt(receipt)
    _check_participants(s, creator, data.participants)

    split = Split(
        creator_id=creator.id, title=title, description=data.description,
        total_amount=round2(subtotal + receipt.tax + receipt.tip),
        currency=data.currency or default_currency(), strategy=SplitStrategy.ITEMIZED,
        tax_amount=round2(receipt.tax), tip_amount=round2(receipt.tip),
        tax_tip_method=data.tax_tip_method,
    )
    rows = [Participant(user_id=creator.id, role=ParticipantRole.CREATOR)]
    rows += [_participant_row(p, ZERO) for p in data.participants]
    rows += [LineItem(name=i.name.strip(), unit_price=round2(i.unit_price), quantity=i.quantity)
             for i in receipt.items]
    split = _persist(s, split, rows, "create itemized split")
    log.info("itemized split %s created by user %s: %d items, total %s", split.id, creator.id,
             len(receipt.items), split.total_amount)
    return split


def get_split(s: Session, split_id: int) -> Split:
    with store_call(s, "load split"):
        split = s.get(Split, split_id)
    if split is None:
        raise NotFound(f"split {split_id} not found", split_id=split_id)
    return split


def participants_of(s: Session, split: Split) -> List[Participant]:
    return list(s.exec(select(Participant).where(Participant.split_id == split.id).order_by(Participant.id)).all())


def participant_for_user(s: Session, split: Split, user: User) -> Optional[Participant]:
    return s.exec(select(Participant).where(Participant.split_id == split.id,
                                            Participant.user_id == user.id)).first()


def require_creator(split: Split, user: User, action: str) -> None:
    if split.creator_id != user.id:
        raise PermissionDenied(f"only the creator of a split can {action}")


def require_member(s: Session, split: Split, user: User) -> None:
    if split.creator_id != user.id and participant_for_user(s, split, user) is None:
        raise PermissionDenied("you are not part of this split")


def user_splits(s: Session, user: User) -> List[Split]:
    joined = select(Participant.split_id).where(Participant.user_id == user.id)
    stmt = select(Split).where((Split.creator_id == user.id) | (Split.id.in_(joined))).order_by(Split.created_at.desc())
    with store_call(s, "list splits"):
        return list(s.exec(stmt).all())


def identity(s: Session, p: Participant) -> Tuple[Optional[str], Optional[str]]:
    """(email, display name) for a participant, account or external."""
    if p.user_id is not None:
        user = s.get(User, p.user_id)
        if user is not None:
            return user.email or p.external_email, user.name or p.external_name
    return p.external_email, p.external_name


def ledgers(s: Session, participants: List[Participant]) -> List[ParticipantLedger]:
    out = []
    for p in participants:
        email, name = identity(s, p)
        out.append(ParticipantLedger(p.id, p.role, p.status, p.amount_owed, p.amount_paid, email, name))
    return out


def payment_records(s: Session, split: Split) -> List[PaymentRecord]:
    events = s.exec(select(PaymentEvent).where(PaymentEvent.split_id == split.id)
                    .order_by(PaymentEvent.received_at, PaymentEvent.id)).all()
    return [PaymentRecord(e.payer_email, e.payer_name, e.amount) for e in events]


def split_status(s: Session, split: Split) -> SettlementSummary:
    # read-only: derives everything from rows, writes nothing
    with store_call(s, "reconcile split"):
        return reconcile(ledgers(s, participants_of(s, split)), payment_records(s, split))


def settle_if_complete(s: Session, split: Split) -> bool:
    """Persist active -> settled when every ower is paid. Caller commits."""
    if split.status == SplitStatus.SETTLED:
        return True
    if not split_status(s, split).is_settled:
        return False
    t = Split.__table__
    matched = execute_write(s, update(t).where(t.c.id == split.id, t.c.status == SplitStatus.ACTIVE)
                            .values(status=SplitStatus.SETTLED))
    if matched:
        log.info("split %s settled", split.id)
    return True


def mark_paid(s: Session, split_id: int, participant_id: int, user: User) -> Participant:
    split = get_split(s, split_id)
    require_creator(split, user, "mark people as paid")
    if not split.finalized:
        # itemized amounts are still zero until the split is finalized
        raise SplitNotReady("finalize the split before marking anyone paid")
    with store_call(s, "mark paid"):
        participant = s.get(Participant, participant_id)
        if participant is None or participant.split_id != split.id:
            raise NotFound(f"participant {participant_id} is not in split {split_id}",
                           participant_id=participant_id)
        t = Participant.__table__
        # single conditional write; an already-paid row matches nothing
        matched = execute_write(s, update(t)
                                .where(t.c.id == participant_id, t.c.status == ParticipantStatus.PENDING)
                                .values(status=ParticipantStatus.PAID, amount_paid=t.c.amount_owed))
        if matched:
            log.info("participant %s in split %s marked paid by creator", participant_id, split_id)
        else:
            log.debug("participant %s in split %s was already paid", participant_id, split_id)
        s.expire_all()
        settle_if_complete(s, s.get(Split, split_id))
        s.commit()
        s.refresh(participant)
    return participant


def delete_split(s: Session, split_id: int, user: User) -> None:
    split = get_split(s, split_id)
    require_creator(split, user, "delete it")
    items = LineItem.__table__
    item_ids = select(items.c.id).where(items.c.split_id == split_id)
    with store_call(s, "delete split"):
        execute_write(s, delete(Claim.__table__).where(Claim.__table__.c.item_id.in_(item_ids)))
        for t in (items, PaymentEvent.__table__, Participant.__table__):
            execute_write(s, delete(t).where(t.c.split_id == split_id))
        execute_write(s, delete(Split.__table__).where(Split.__table__.c.id == split_id))
        s.commit()
    s.expunge_all()
    log.info("split %s deleted by user %s", split_id, user.id)


def link_external_participants(s: Session, user: User) -> int:
    """Attach external participants invited by email to a newly known account."""
    if not user.email:
        return 0
    rows = s.exec(select(Participant).where(Participant.user_id == None,  # noqa: E711
                                            Participant.external_email == user.email.lower())).all()
    for p in rows:
        p.user_id = user.id
        s.add(p)
    if rows:
        s.commit()
        log.info("linked %d external participant(s) to user %s", len(rows), user.id)
    return len(rows)


def summary_dict(s: Session, split: Split) -> Dict:
    participants = participants_of(s, split)
    status = split_status(s, split)
    owed_by_others = sum((p.amount_owed for p in participants if p.role == ParticipantRole.OWER), ZERO)
    people = []
    for p in participants:
        email, name = identity(s, p)
        state = status.states[p.id]
        people.append({
            "id": p.id, "user_id": p.user_id, "name": name, "email": email,
            "role": p.role.value, "amount_owed": str(p.amount_owed), "amount_paid": str(p.amount_paid),
            "status": p.status.value, "paid": state.paid, "paid_via": state.source,
        })
    return {
        "id": split.id, "title": split.title, "description": split.description,
        "total_amount": str(split.total_amount), "currency": split.currency,
        "strategy": split.strategy.value,
        "status": (SplitStatus.SETTLED if status.is_settled else split.status).value,
        "finalized": split.finalized, "creator_id": split.creator_id,
        "tax_amount": str(split.tax_amount), "tip_amount": str(split.tip_amount),
        "tax_tip_method": split.tax_tip_method.value,
        "created_at": split.created_at.isoformat(),
        "participant_count": len(participants), "paid_count": status.paid_count,
        "creator_share": str(split.total_amount - owed_by_others),
        "total_owed": str(status.total_owed), "collected": str(status.collected),
        "outstanding": str(status.outstanding), "participants": people,
    }
