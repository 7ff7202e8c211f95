# request bodies; not tables
from decimal import Decimal
from typing import List, Optional
from sqlmodel import SQLModel
from billsplit.models.split import SplitStrategy, TaxTipMethod


class ParticipantIn(SQLModel):
    user_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    # custom amount or percentage, depending on the strategy
    value: Optional[Decimal] = None


class SplitCreate(SQLModel):
    title: str
    description: str = ""
    total_amount: Decimal
    currency: Optional[str] = None
    strategy: SplitStrategy = SplitStrategy.EQUAL
    include_creator: bool = True
    creator_value: Optional[Decimal] = None
    participants: List[ParticipantIn] = []


class LineItemIn(SQLModel):
    name: str
    unit_price: Decimal
    quantity: int = 1


class ReceiptIn(SQLModel):
    items: List[LineItemIn] = []
    subtotal: Optional[Decimal] = None
    tax: Decimal = Decimal("0.00")
    tip: Decimal = Decimal("0.00")
    total: Optional[Decimal] = None
    merchant: Optional[str] = None


class ReceiptSplitCreate(SQLModel):
    title: str
    description: str = ""
    currency: Optional[str] = None
    receipt: ReceiptIn
    tax_tip_method: TaxTipMethod = TaxTipMethod.PROPORTIONAL
    participants: List[ParticipantIn] = []


class PaymentEventIn(SQLModel):
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Decimal
    external_ref: Optional[str] = None
