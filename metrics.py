"""Aggregation engine behind the dashboard cards and the balance chart.

Everything in this module is a pure function of its arguments: the
transaction collection is passed in on every call and nothing is cached or
written back. Records may arrive either as validated ``Transaction`` models
or as raw mappings straight from the record store; raw records that fail
validation are skipped and counted rather than aborting the computation.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Union

from pydantic import ValidationError

from categories import get_category_name
from models import BreakdownType, PeriodKind, TransactionType
from periods import DateRange, TimePeriod, bucket_key, bucket_keys, resolve_time_period
from schemas import (
    BalanceTrendData,
    BalanceTrendPoint,
    CategoryBreakdown,
    DashboardSummary,
    Transaction,
    TransactionCounts,
    TrendPeriod,
)

logger = logging.getLogger(__name__)

RawRecord = Union[Transaction, Mapping[str, object]]
CategoryNameLookup = Callable[[str], str]


class CorruptRecord(ValueError):
    def __init__(self, reason: str, record_id: Optional[object] = None) -> None:
        self.reason = reason
        self.record_id = record_id
        label = f"record {record_id!r}" if record_id is not None else "record"
        super().__init__(f"Corrupt {label}: {reason}")


@dataclass
class TransactionGroup:
    income: float = 0.0
    expense: float = 0.0
    count: int = 0


def _coerce_record(record: RawRecord) -> Transaction:
    if isinstance(record, Transaction):
        # model_construct() bypasses validation, so instances are re-checked too.
        record = dict(record.__dict__)
    if isinstance(record, Mapping):
        try:
            return Transaction.model_validate(record)
        except ValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or "record"
                for err in exc.errors()
            )
            raise CorruptRecord(f"invalid fields: {fields}", record.get("id")) from exc
    raise CorruptRecord(f"unsupported record type {type(record).__name__}")


def normalize_transactions(
    records: Iterable[RawRecord],
) -> tuple[list[Transaction], int]:
    """Validate ``records``, returning the usable ones and the skip count."""
    clean: list[Transaction] = []
    skipped = 0
    for index, record in enumerate(records):
        try:
            clean.append(_coerce_record(record))
        except CorruptRecord as exc:
            skipped += 1
            logger.warning(f"skipped_corrupt_record: index={index} reason={exc}")
    return clean, skipped


def filter_by_date_range(
    transactions: Iterable[Transaction], date_range: DateRange
) -> list[Transaction]:
    return [t for t in transactions if date_range.start <= t.date <= date_range.end]


def group_transactions_by_period(
    transactions: Iterable[Transaction], granularity: PeriodKind
) -> dict[date, TransactionGroup]:
    grouped: dict[date, TransactionGroup] = {}
    for txn in transactions:
        key = bucket_key(txn.date, granularity)
        group = grouped.get(key)
        if group is None:
            group = grouped[key] = TransactionGroup()
        if txn.type == TransactionType.income:
            group.income += txn.amount
        else:
            group.expense += txn.amount
        group.count += 1
    return grouped


def _signed_amount(txn: Transaction) -> float:
    if txn.type == TransactionType.income:
        return txn.amount
    return -txn.amount


def calculate_starting_balance(
    transactions: Iterable[Transaction], period_start: date
) -> float:
    """Net of every transaction dated strictly before ``period_start``."""
    return sum(
        (_signed_amount(t) for t in transactions if t.date < period_start), 0.0
    )


def generate_balance_trend_points(
    grouped: Mapping[date, TransactionGroup],
    date_range: DateRange,
    granularity: PeriodKind,
    starting_balance: float,
) -> list[BalanceTrendPoint]:
    points: list[BalanceTrendPoint] = []
    balance = starting_balance
    for key in bucket_keys(date_range, granularity):
        group = grouped.get(key) or TransactionGroup()
        balance += group.income - group.expense
        points.append(
            BalanceTrendPoint(
                date=key,
                balance=balance,
                income=group.income,
                expense=group.expense,
                transaction_count=group.count,
            )
        )
    return points


def summarize_trend(
    points: list[BalanceTrendPoint], starting_balance: float
) -> tuple[float, float, float]:
    """Return ``(ending_balance, change, change_percentage)``."""
    ending_balance = points[-1].balance if points else starting_balance
    change = ending_balance - starting_balance
    if starting_balance == 0:
        change_percentage = 0.0
    else:
        change_percentage = change / abs(starting_balance) * 100
    return ending_balance, change, change_percentage


def calculate_total_income(transactions: Iterable[Transaction]) -> float:
    return sum(
        (t.amount for t in transactions if t.type == TransactionType.income), 0.0
    )


def calculate_total_expenses(transactions: Iterable[Transaction]) -> float:
    return sum(
        (t.amount for t in transactions if t.type == TransactionType.expense), 0.0
    )


def calculate_net_balance(transactions: Iterable[Transaction]) -> float:
    items = list(transactions)
    return calculate_total_income(items) - calculate_total_expenses(items)


def _parse_breakdown_type(
    value: Union[BreakdownType, TransactionType, str],
) -> BreakdownType:
    try:
        return BreakdownType(getattr(value, "value", value))
    except ValueError as exc:
        raise ValueError(
            f"Invalid breakdown type: {value}. Expected 'income', 'expense', or 'all'."
        ) from exc


def calculate_category_breakdown(
    transactions: Iterable[Transaction],
    type: Union[BreakdownType, TransactionType, str] = BreakdownType.all,
    *,
    category_name: CategoryNameLookup = get_category_name,
) -> list[CategoryBreakdown]:
    selected = _parse_breakdown_type(type)
    if selected == BreakdownType.all:
        filtered = list(transactions)
    else:
        filtered = [t for t in transactions if t.type.value == selected.value]
    if not filtered:
        return []

    # Insertion order doubles as the tie-break once the stable sort runs.
    amounts: dict[str, float] = {}
    counts: dict[str, int] = {}
    for txn in filtered:
        amounts[txn.category_id] = amounts.get(txn.category_id, 0.0) + txn.amount
        counts[txn.category_id] = counts.get(txn.category_id, 0) + 1

    total = sum(amounts.values())
    breakdown = [
        CategoryBreakdown(
            category_id=category_id,
            category_name=category_name(category_id),
            amount=amount,
            percentage=(amount / total * 100) if total else 0.0,
            transaction_count=counts[category_id],
        )
        for category_id, amount in amounts.items()
    ]
    breakdown.sort(key=lambda item: item.amount, reverse=True)
    return breakdown


def compute_dashboard_summary(
    transactions: Iterable[RawRecord],
    period: TimePeriod,
    *,
    today: Optional[date] = None,
    category_name: CategoryNameLookup = get_category_name,
) -> DashboardSummary:
    kind, date_range = resolve_time_period(period, window="single", today=today)
    clean, skipped = normalize_transactions(transactions)
    in_range = filter_by_date_range(clean, date_range)

    total_income = calculate_total_income(in_range)
    total_expenses = calculate_total_expenses(in_range)
    income_count = sum(1 for t in in_range if t.type == TransactionType.income)
    logger.debug(
        f"dashboard_summary: kind={kind.value} start={date_range.start} "
        f"end={date_range.end} transactions={len(in_range)} skipped={skipped}"
    )
    return DashboardSummary(
        period=TrendPeriod(start=date_range.start, end=date_range.end, kind=kind),
        total_income=total_income,
        total_expenses=total_expenses,
        net_balance=total_income - total_expenses,
        category_breakdown=calculate_category_breakdown(
            in_range, BreakdownType.all, category_name=category_name
        ),
        transaction_count=TransactionCounts(
            income=income_count,
            expense=len(in_range) - income_count,
            total=len(in_range),
        ),
        skipped_records=skipped,
    )


def compute_balance_trend(
    transactions: Iterable[RawRecord],
    period: TimePeriod,
    *,
    today: Optional[date] = None,
) -> BalanceTrendData:
    kind, date_range = resolve_time_period(period, window="trend", today=today)
    clean, skipped = normalize_transactions(transactions)

    starting_balance = calculate_starting_balance(clean, date_range.start)
    grouped = group_transactions_by_period(
        filter_by_date_range(clean, date_range), kind
    )
    points = generate_balance_trend_points(
        grouped, date_range, kind, starting_balance
    )
    ending_balance, change, change_percentage = summarize_trend(
        points, starting_balance
    )
    logger.debug(
        f"balance_trend: kind={kind.value} start={date_range.start} "
        f"end={date_range.end} points={len(points)} skipped={skipped}"
    )
    return BalanceTrendData(
        points=points,
        period=TrendPeriod(start=date_range.start, end=date_range.end, kind=kind),
        starting_balance=starting_balance,
        ending_balance=ending_balance,
        change=change,
        change_percentage=change_percentage,
        skipped_records=skipped,
    )
