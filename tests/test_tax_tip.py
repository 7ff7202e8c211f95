from decimal import Decimal

from billsplit.models.split import TaxTipMethod
from billsplit.services.tax_tip import Breakdown, distribute_tax_tip, finalize_obligations


def test_tax_follows_share_of_receipt():
    out = distribute_tax_tip("1.50", "0", {"A": "10.00", "B": "5.00"}, "15.00")
    assert out["A"].tax == Decimal("1.00")
    assert out["B"].tax == Decimal("0.50")
    assert out["A"] == Breakdown(Decimal("10.00"), Decimal("1.00"), Decimal("0.00"), Decimal("11.00"))


def test_unclaimed_items_keep_their_tax():
    out = distribute_tax_tip("2.00", "4.00", {"A": "10.00"}, "20.00")
    assert out["A"] == Breakdown(Decimal("10.00"), Decimal("1.00"), Decimal("2.00"), Decimal("13.00"))


def test_empty_receipt_has_no_tax_share():
    out = distribute_tax_tip("2.00", "1.00", {"A": "0"}, "0")
    assert out["A"].total == Decimal("0.00")


def test_finalize_sums_exactly_to_receipt_total():
    third = Decimal("10") / 3
    amounts = finalize_obligations("1.00", "2.00", {"a": third, "b": third, "c": third}, "10.00")
    assert sum(amounts.values()) == Decimal("13.00")
    assert amounts == {"a": Decimal("4.34"), "b": Decimal("4.33"), "c": Decimal("4.33")}


def test_finalize_without_drift():
    amounts = finalize_obligations("1.50", "0", {"A": "10.00", "B": "5.00"}, "15.00")
    assert amounts == {"A": Decimal("11.00"), "B": Decimal("5.50")}


def test_equal_method_splits_tax_and_tip_per_person():
    out = distribute_tax_tip("1.50", "3.00", {"A": "10.00"}, "15.00",
                             TaxTipMethod.EQUAL, participants=["A", "B", "C"])
    assert out["A"] == Breakdown(Decimal("10.00"), Decimal("0.50"), Decimal("1.00"), Decimal("11.50"))
    assert out["B"] == Breakdown(Decimal("0.00"), Decimal("0.50"), Decimal("1.00"), Decimal("1.50"))
    assert set(out) == {"A", "B", "C"}


def test_equal_method_hands_out_leftover_cents_first():
    out = distribute_tax_tip("1.00", "0", {"A": "5", "B": "5", "C": "5"}, "15", TaxTipMethod.EQUAL)
    assert [b.tax for b in out.values()] == [Decimal("0.34"), Decimal("0.33"), Decimal("0.33")]


def test_equal_finalize_sums_exactly():
    third = Decimal("10") / 3
    amounts = finalize_obligations("1.00", "0.50", {"a": third, "b": third, "c": third}, "10.00",
                                   TaxTipMethod.EQUAL, ["a", "b", "c"])
    assert sum(amounts.values()) == Decimal("11.50")
    assert all(amount > 0 for amount in amounts.values())


def test_equal_finalize_with_nobody():
    assert finalize_obligations("1.00", "1.00", {}, "10.00", TaxTipMethod.EQUAL, []) == {}
