"""Income records owned by the income subsystem."""

from __future__ import annotations

import datetime as dt
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Income(SQLModel, table=True):
    """A recurring or one-off income source."""

    __tablename__: ClassVar[str] = "income"

    id: Optional[int] = Field(default=None, primary_key=True)
    amount: float = Field(nullable=False)
    currency: str = Field(default="USD", max_length=3)
    category: str = Field(default="Salary", max_length=64)
    frequency: str = Field(default="monthly", max_length=16, description="weekly|monthly|yearly|one-time")
    date: dt.date = Field(nullable=False)
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc), nullable=False
    )
