from decimal import Decimal
from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class LineItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    split_id: int = Field(foreign_key="split.id", index=True)
    name: str
    unit_price: Decimal = Field(max_digits=10, decimal_places=2)
    quantity: int = 1
    # bumped by every conditional write against this item's claim pool
    version: int = 0

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Claim(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("item_id", "participant_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="lineitem.id", index=True)
    participant_id: int = Field(foreign_key="participant.id")
    quantity_claimed: int = 1
    share_count: int = 1
