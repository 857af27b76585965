import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from categories import get_category_by_id
from models import PeriodKind, TransactionType


class Transaction(BaseModel):
    """A stored money movement, as read back from the record store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    date: dt.date
    type: TransactionType
    category_id: str = Field(..., min_length=1)
    category_name: str = ""
    description: str = ""
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(
        ...,
        ge=Decimal("0.01"),
        le=Decimal("999999999.99"),
        decimal_places=2,
    )
    date: dt.date
    type: TransactionType
    category_id: str = Field(..., min_length=1)
    description: str = Field(default="", max_length=200)

    @field_validator("date")
    @classmethod
    def _year_in_range(cls, value: dt.date) -> dt.date:
        if not 1900 <= value.year <= 2100:
            raise ValueError("Year must be between 1900 and 2100")
        return value

    @model_validator(mode="after")
    def _category_matches_type(self) -> "TransactionIn":
        category = get_category_by_id(self.category_id)
        if category is None:
            raise ValueError("Category does not exist")
        if category.type != self.type:
            raise ValueError("Category type mismatch")
        return self


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Optional[Decimal] = None
    date: Optional[dt.date] = None
    type: Optional[TransactionType] = None
    category_id: Optional[str] = None
    description: Optional[str] = None


class BalanceTrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    balance: float
    income: float = 0.0
    expense: float = 0.0
    transaction_count: int = 0


class TrendPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: dt.date
    end: dt.date
    kind: PeriodKind


class BalanceTrendData(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: list[BalanceTrendPoint]
    period: TrendPeriod
    starting_balance: float
    ending_balance: float
    change: float
    change_percentage: float
    skipped_records: int = 0


class CategoryBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    amount: float
    percentage: float
    transaction_count: int


class TransactionCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    income: int = 0
    expense: int = 0
    total: int = 0


class DashboardSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: TrendPeriod
    total_income: float
    total_expenses: float
    net_balance: float
    category_breakdown: list[CategoryBreakdown]
    transaction_count: TransactionCounts
    skipped_records: int = 0
