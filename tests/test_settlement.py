from decimal import Decimal

import pytest

from billsplit.models.split import ParticipantRole, ParticipantStatus
from billsplit.services.settlement_service import (
    ParticipantLedger, PaymentRecord, match_payment, names_match, participant_state, reconcile,
)

PENDING, PAID = ParticipantStatus.PENDING, ParticipantStatus.PAID


def ower(pid, owed, email=None, name=None, status=PENDING, paid="0"):
    return ParticipantLedger(pid, ParticipantRole.OWER, status, Decimal(owed), Decimal(paid), email, name)


@pytest.fixture
def creator():
    return ParticipantLedger(1, ParticipantRole.CREATOR, PENDING, Decimal("10.00"), Decimal("0"),
                             "alice@example.com", "Alice Smith")


@pytest.mark.parametrize("a, b, expected", [
    ("Jon Smith", "Jon", True),
    ("jon  SMITH", "Jon Smith", True),
    ("Mary Jane Watson", "jane watson", True),
    ("Jon", "Jonathan Smith-Jones", False),
    ("Jon Smith", "Jonathan Smith-Jones", False),
    ("Jon", "Jonathan", False),
    ("Smith Jon", "Jon Smith", False),
    (None, "Jon", False),
    ("", "", False),
])
def test_names_match(a, b, expected):
    assert names_match(a, b) is expected


def test_strict_names_need_equality():
    assert not names_match("Jon Smith", "Jon", strict=True)
    assert names_match("jon smith", "Jon  Smith", strict=True)


def test_email_match_beats_name_match():
    by_name = PaymentRecord(None, "Bob", Decimal("5.00"))
    by_email = PaymentRecord("BOB@example.com", "Robert", Decimal("5.00"))
    bob = ower(2, "5.00", email="bob@example.com", name="Bob")
    assert match_payment(bob, [by_name, by_email]) is by_email


def test_local_record_wins_over_payments():
    bob = ower(2, "5.00", email="bob@example.com", status=PAID, paid="5.00")
    state = participant_state(bob, [PaymentRecord("bob@example.com", None, Decimal("7.00"))])
    assert state.paid and state.source == "local"
    assert state.amount == Decimal("5.00")


def test_loose_name_match_marks_paid():
    jon = ower(2, "10.00", name="Jon")
    payments = [PaymentRecord(None, "Jon Smith", Decimal("10.00"))]
    assert reconcile([jon], payments).is_settled
    assert not reconcile([jon], payments, strict_names=True).is_settled


def test_settles_once_every_ower_has_paid(creator):
    bob = ower(2, "10.00", email="bob@example.com", status=PAID, paid="10.00")
    dave = ower(3, "10.00", email="dave@example.com")

    summary = reconcile([creator, bob, dave], [])
    assert not summary.is_settled
    assert summary.total_owed == Decimal("20.00")
    assert summary.collected == Decimal("10.00")
    assert summary.outstanding == Decimal("10.00")
    assert summary.paid_count == 1 and summary.ower_count == 2

    summary = reconcile([creator, bob, dave], [PaymentRecord("dave@example.com", None, Decimal("10.00"))])
    assert summary.is_settled
    assert summary.outstanding == Decimal("0.00")
    assert summary.states[3].source == "payment"
    # the creator's own share never holds things up
    assert not summary.states[1].paid


def test_outstanding_never_goes_negative(creator):
    bob = ower(2, "10.00", email="bob@example.com")
    summary = reconcile([creator, bob], [PaymentRecord("bob@example.com", None, Decimal("15.00"))])
    assert summary.collected == Decimal("15.00")
    assert summary.outstanding == Decimal("0.00")


def test_zero_owers_do_not_count(creator):
    idle = ower(2, "0.00", name="Carol")
    bob = ower(3, "5.00", name="Bob", status=PAID, paid="5.00")
    summary = reconcile([creator, idle, bob], [])
    assert summary.ower_count == 1
    assert summary.is_settled


def test_nobody_owing_is_not_settled(creator):
    assert not reconcile([creator], []).is_settled
