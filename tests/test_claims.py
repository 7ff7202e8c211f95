from decimal import Decimal
from fractions import Fraction

import pytest

from billsplit.errors import InvalidClaim, NotFound, OverClaim
from billsplit.services.claims import ClaimState, ClaimTracker, ItemState


@pytest.fixture
def tracker():
    """Two burgers at 12.00 and one pizza at 18.00."""
    return ClaimTracker([
        ItemState("burger", Decimal("12.00"), 2),
        ItemState("pizza", Decimal("18.00"), 1),
    ])


def test_claim_reduces_remaining(tracker):
    tracker.upsert_claim("burger", "alice", 1)
    assert tracker.remaining_quantity("burger") == 1
    assert not tracker.is_fully_claimed("burger")


def test_over_claim_leaves_state_unchanged(tracker):
    tracker.upsert_claim("burger", "alice", 1)
    with pytest.raises(OverClaim) as exc:
        tracker.upsert_claim("burger", "bob", 2)
    assert exc.value.extra["remaining"] == 1
    assert tracker.claim("burger", "bob") is None
    assert tracker.remaining_quantity("burger") == 1


def test_cannot_claim_more_than_the_receipt_has(tracker):
    with pytest.raises(OverClaim):
        tracker.upsert_claim("burger", "alice", 3, share_count=3)


def test_reclaim_replaces_previous_claim(tracker):
    tracker.upsert_claim("burger", "alice", 1)
    tracker.upsert_claim("burger", "alice", 2)
    assert tracker.remaining_quantity("burger") == 0
    assert len(tracker.claims_for("burger")) == 1

    tracker.upsert_claim("burger", "alice", 1)
    assert tracker.remaining_quantity("burger") == 1


def test_three_people_share_one_pizza(tracker):
    for who in ("alice", "bob", "carol"):
        tracker.upsert_claim("pizza", who, 1, share_count=3)
    assert tracker.is_fully_claimed("pizza")
    assert tracker.subtotal_for("bob") == Decimal("6")
    with pytest.raises(OverClaim):
        tracker.upsert_claim("pizza", "dave", 1, share_count=3)


def test_uneven_shares_of_one_unit(tracker):
    tracker.upsert_claim("pizza", "alice", 1, share_count=2)
    tracker.upsert_claim("pizza", "bob", 1, share_count=3)
    assert tracker.remaining_quantity("pizza") == Fraction(1, 6)
    with pytest.raises(OverClaim):
        tracker.upsert_claim("pizza", "carol", 1, share_count=2)
    tracker.upsert_claim("pizza", "carol", 1, share_count=6)
    assert tracker.is_fully_claimed("pizza")


def test_claims_are_validated(tracker):
    with pytest.raises(InvalidClaim):
        tracker.upsert_claim("burger", "alice", 0)
    with pytest.raises(InvalidClaim):
        tracker.upsert_claim("burger", "alice", 1, share_count=0)
    with pytest.raises(NotFound):
        tracker.upsert_claim("salad", "alice", 1)


def test_release_returns_quantity_to_pool(tracker):
    tracker.upsert_claim("burger", "alice", 2)
    tracker.release_claim("burger", "alice")
    assert tracker.remaining_quantity("burger") == 2
    # releasing nothing is fine
    tracker.release_claim("burger", "alice")


def test_subtotals_follow_claims(tracker):
    tracker.upsert_claim("burger", "alice", 1)
    tracker.upsert_claim("burger", "bob", 1)
    tracker.upsert_claim("pizza", "alice", 1, share_count=2)
    tracker.upsert_claim("pizza", "bob", 1, share_count=2)
    assert tracker.subtotals() == {"alice": Decimal("21"), "bob": Decimal("21")}
    assert tracker.receipt_subtotal() == Decimal("42.00")
    assert tracker.all_claimed()


def test_unclaimed_items_are_listed(tracker):
    tracker.upsert_claim("burger", "alice", 2)
    assert [i.id for i in tracker.unclaimed_items()] == ["pizza"]


def test_claimed_quantity_never_exceeds_pool(tracker):
    attempts = [
        ("alice", 1, 1), ("bob", 2, 1), ("bob", 1, 2), ("carol", 1, 2),
        ("dave", 1, 1), ("alice", 2, 1), ("carol", 1, 1), ("alice", 1, 1),
    ]
    for who, quantity, share in attempts:
        try:
            tracker.upsert_claim("burger", who, quantity, share)
        except OverClaim:
            pass
        used = sum((c.consumed for c in tracker.claims_for("burger")), Fraction(0))
        assert used <= 2
        assert tracker.remaining_quantity("burger") >= 0


def test_existing_claims_must_reference_known_items():
    with pytest.raises(NotFound):
        ClaimTracker([ItemState("a", Decimal("1.00"), 1)], [ClaimState("b", "alice", 1)])
