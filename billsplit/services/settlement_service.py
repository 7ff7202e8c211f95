# billsplit/services/settlement_service.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Hashable, List, Optional, Sequence

from billsplit.models.split import ParticipantRole, ParticipantStatus
from billsplit.services.money import ZERO, round2, to_money


@dataclass(frozen=True)
class ParticipantLedger:
    """What the reconciler needs to know about one participant."""
    id: Hashable
    role: ParticipantRole
    status: ParticipantStatus
    amount_owed: Decimal
    amount_paid: Decimal = ZERO
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class PaymentRecord:
    payer_email: Optional[str]
    payer_name: Optional[str]
    amount: Decimal


@dataclass(frozen=True)
class PaidState:
    paid: bool
    source: Optional[str] = None  # "local" | "payment"
    amount: Decimal = ZERO
    payment: Optional[PaymentRecord] = None


@dataclass
class SettlementSummary:
    states: Dict[Hashable, PaidState] = field(default_factory=dict)
    total_owed: Decimal = ZERO
    collected: Decimal = ZERO
    outstanding: Decimal = ZERO
    paid_count: int = 0
    ower_count: int = 0
    is_settled: bool = False


def _normalize(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def names_match(a: Optional[str], b: Optional[str], strict: bool = False) -> bool:
    """Loose display-name comparison for payments coming from outside.

    Strict mode is case-insensitive equality only. Otherwise the shorter name's
    tokens must appear as a contiguous run of whole tokens in the longer one:
    "Jon" matches "Jon Smith", "Jon" does not match "Jonathan".
    """
    a, b = _normalize(a), _normalize(b)
    if not a or not b:
        return False
    if a == b:
        return True
    if strict:
        return False
    short, long = sorted((a.split(), b.split()), key=len)
    width = len(short)
    return any(long[i:i + width] == short for i in range(len(long) - width + 1))


def match_payment(participant: ParticipantLedger, payments: Sequence[PaymentRecord],
                  strict_names: bool = False) -> Optional[PaymentRecord]:
    email = _normalize(participant.email)
    if email:
        for payment in payments:
            if _normalize(payment.payer_email) == email:
                return payment
    for payment in payments:
        if names_match(participant.name, payment.payer_name, strict=strict_names):
            return payment
    return None


def participant_state(participant: ParticipantLedger, payments: Sequence[PaymentRecord],
                      strict_names: bool = False) -> PaidState:
    # the local record wins, e.g. the creator marked someone paid by hand
    if participant.status == ParticipantStatus.PAID or to_money(participant.amount_paid) > 0:
        return PaidState(True, "local", to_money(participant.amount_paid))
    payment = match_payment(participant, payments, strict_names)
    if payment is not None:
        return PaidState(True, "payment", to_money(payment.amount), payment)
    return PaidState(False)


def reconcile(participants: Sequence[ParticipantLedger], payments: Sequence[PaymentRecord],
              strict_names: bool = False) -> SettlementSummary:
    """Derive paid / outstanding / settled from participants and payments.

    Pure: nothing here writes, so it can run on every read.
    """
    summary = SettlementSummary()
    for participant in participants:
        summary.states[participant.id] = participant_state(participant, payments, strict_names)

    # only owers with something to pay hold up settlement
    owers: List[ParticipantLedger] = [
        p for p in participants if p.role == ParticipantRole.OWER and to_money(p.amount_owed) > 0
    ]
    for participant in owers:
        state = summary.states[participant.id]
        summary.total_owed += to_money(participant.amount_owed)
        if state.paid:
            summary.paid_count += 1
            summary.collected += state.amount

    summary.total_owed = round2(summary.total_owed)
    summary.collected = round2(summary.collected)
    # a payer matched for more than their share must not push this negative
    summary.outstanding = max(summary.total_owed, summary.collected) - summary.collected
    summary.ower_count = len(owers)
    summary.is_settled = bool(owers) and summary.paid_count == len(owers)
    return summary
