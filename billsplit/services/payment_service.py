# billsplit/services/payment_service.py
import logging

from sqlmodel import Session, select

from billsplit.db import store_call
from billsplit.errors import InvalidSplit
from billsplit.models.payment import PaymentEvent
from billsplit.models.schemas import PaymentEventIn
from billsplit.services.money import round2
from billsplit.services.split_service import get_split, settle_if_complete

log = logging.getLogger(__name__)


def record_payment_event(s: Session, split_id: int, data: PaymentEventIn) -> PaymentEvent:
    """Store a payment the gateway reported and settle the split if that was the last one.

    Replaying an event with a known `external_ref` returns the stored event.
    """
    split = get_split(s, split_id)
    if data.amount is None or data.amount <= 0:
        raise InvalidSplit("payment amount must be positive")
    if not (data.payer_email or "").strip() and not (data.payer_name or "").strip():
        raise InvalidSplit("payment needs a payer email or name")

    with store_call(s, "record payment"):
        if data.external_ref:
            known = s.exec(select(PaymentEvent).where(PaymentEvent.external_ref == data.external_ref)).first()
            if known is not None:
                log.debug("payment %s already recorded", data.external_ref)
                return known
        event = PaymentEvent(
            split_id=split.id,
            payer_email=(data.payer_email or "").strip().lower() or None,
            payer_name=(data.payer_name or "").strip() or None,
            amount=round2(data.amount),
            external_ref=data.external_ref,
        )
        s.add(event)
        s.flush()
        settle_if_complete(s, split)
        s.commit()
        s.refresh(event)
    log.info("payment of %s recorded for split %s from %s", event.amount, split.id,
             event.payer_email or event.payer_name)
    return event
