from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class PeriodKind(str, Enum):
    day = "day"
    week = "week"
    month = "month"


class BreakdownType(str, Enum):
    income = "income"
    expense = "expense"
    all = "all"


class SortField(str, Enum):
    date = "date"
    amount = "amount"
    category = "category"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class StoredBlob(Base):
    """One key of the key-value record store; ``value`` holds JSON text."""

    __tablename__ = "stored_blobs"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
