# billsplit/services/receipt_service.py
import logging
from decimal import Decimal
from typing import Optional

from billsplit.errors import InvalidLineItem
from billsplit.models.schemas import LineItemIn, ReceiptIn
from billsplit.services.money import ZERO, round2, to_money

log = logging.getLogger(__name__)

# recognised subtotals this far off the line items are logged, not rejected
SUBTOTAL_TOLERANCE = Decimal("0.10")


def validate_line_item(name: Optional[str], unit_price, quantity) -> None:
    if not name or not name.strip():
        raise InvalidLineItem("line item needs a name")
    if unit_price is None or to_money(unit_price) <= 0:
        raise InvalidLineItem(f"{name}: unit price must be positive", item=name, unit_price=unit_price)
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise InvalidLineItem(f"{name}: quantity must be a whole number of at least 1", item=name, quantity=quantity)


def validate_receipt(receipt: ReceiptIn) -> Decimal:
    """Check the shape of a recognised receipt and return its item subtotal."""
    if not receipt.items:
        raise InvalidLineItem("receipt must have at least one item")
    for item in receipt.items:
        validate_line_item(item.name, item.unit_price, item.quantity)
    for label in ("tax", "tip", "subtotal", "total"):
        value = getattr(receipt, label)
        if value is not None and value < 0:
            raise InvalidLineItem(f"receipt {label} cannot be negative", field=label)

    subtotal = round2(sum((line_total(i) for i in receipt.items), ZERO))
    if receipt.subtotal is not None and abs(receipt.subtotal - subtotal) > SUBTOTAL_TOLERANCE:
        log.warning("receipt subtotal %s does not match line items %s (merchant=%s)",
                    receipt.subtotal, subtotal, receipt.merchant)
    return subtotal


def line_total(item: LineItemIn) -> Decimal:
    return to_money(item.unit_price) * item.quantity
