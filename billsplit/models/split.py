from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, SQLModel


class SplitStrategy(str, Enum):
    EQUAL = "equal"
    CUSTOM = "custom"
    PERCENTAGE = "percentage"
    ITEMIZED = "itemized"


class SplitStatus(str, Enum):
    ACTIVE = "active"
    SETTLED = "settled"


class TaxTipMethod(str, Enum):
    PROPORTIONAL = "proportional"
    EQUAL = "equal"


class ParticipantRole(str, Enum):
    CREATOR = "creator"
    OWER = "ower"


class ParticipantStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class Split(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    creator_id: int = Field(foreign_key="user.id")
    title: str
    description: Optional[str] = ""
    total_amount: Decimal = Field(max_digits=10, decimal_places=2)
    currency: str = "AUD"
    strategy: SplitStrategy = SplitStrategy.EQUAL
    status: SplitStatus = SplitStatus.ACTIVE
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    tip_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    tax_tip_method: TaxTipMethod = TaxTipMethod.PROPORTIONAL
    # "ready to collect": obligations are final and claims are closed
    finalized: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Participant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    split_id: int = Field(foreign_key="split.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id")
    external_name: Optional[str] = None
    external_email: Optional[str] = None
    external_phone: Optional[str] = None
    role: ParticipantRole = ParticipantRole.OWER
    amount_owed: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    amount_paid: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    status: ParticipantStatus = ParticipantStatus.PENDING
