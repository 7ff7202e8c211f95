from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlmodel import Field, SQLModel


class PaymentEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    split_id: int = Field(foreign_key="split.id", index=True)
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    external_ref: Optional[str] = Field(default=None, unique=True)
    received_at: datetime = Field(default_factory=datetime.utcnow)
