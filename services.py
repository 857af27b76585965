from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar, Union
from uuid import uuid4

from sqlalchemy.orm import Session

from categories import get_category_name
from config import get_settings
from csv_utils import export_transactions
from metrics import (
    calculate_category_breakdown,
    compute_balance_trend,
    compute_dashboard_summary,
    filter_by_date_range,
    normalize_transactions,
)
from models import BreakdownType, SortField, SortOrder, TransactionType
from periods import TimePeriod, local_today, resolve_time_period
from schemas import (
    BalanceTrendData,
    CategoryBreakdown,
    DashboardSummary,
    Transaction,
    TransactionIn,
    TransactionUpdate,
)
from storage import BlobStore, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionNotFound(ValueError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


@dataclass
class TransactionFilters:
    query: Optional[str] = None
    type: Optional[TransactionType] = None
    category_id: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    sort_by: Optional[SortField] = None
    sort_order: SortOrder = SortOrder.desc


_SORT_KEYS: dict[SortField, Callable[[Transaction], object]] = {
    SortField.date: lambda t: t.date,
    SortField.amount: lambda t: t.amount,
    SortField.category: lambda t: t.category_id,
}


def apply_filters(
    transactions: list[Transaction], filters: TransactionFilters
) -> list[Transaction]:
    """Search, narrow and sort ``transactions``; the input list is left untouched."""
    result = list(transactions)
    if filters.query and filters.query.strip():
        needle = filters.query.strip().lower()
        result = [t for t in result if needle in t.description.lower()]
    if filters.type:
        result = [t for t in result if t.type == filters.type]
    if filters.category_id:
        result = [t for t in result if t.category_id == filters.category_id]
    if filters.start:
        result = [t for t in result if t.date >= filters.start]
    if filters.end:
        result = [t for t in result if t.date <= filters.end]
    if filters.sort_by:
        result.sort(
            key=_SORT_KEYS[filters.sort_by],
            reverse=filters.sort_order == SortOrder.desc,
        )
    return result


class TransactionService:
    def __init__(self, session: Session, storage_key: Optional[str] = None) -> None:
        self.session = session
        self.store = BlobStore(session)
        self.key = storage_key or get_settings().storage_key

    def raw_records(self) -> list[dict]:
        data = self.store.load(self.key, [])
        if not isinstance(data, list):
            raise StorageError(f'Expected a list of transactions under key "{self.key}"')
        return data

    def revision(self) -> int:
        return self.store.revision(self.key)

    def list_all(self) -> list[Transaction]:
        transactions, _skipped = normalize_transactions(self.raw_records())
        return sorted(transactions, key=lambda t: t.date, reverse=True)

    def get(self, transaction_id: str) -> Transaction:
        for txn in self.list_all():
            if txn.id == transaction_id:
                return txn
        raise TransactionNotFound(transaction_id)

    def create(self, data: TransactionIn, *, now: Optional[datetime] = None) -> Transaction:
        now = now or datetime.now(timezone.utc)
        txn = Transaction(
            id=str(uuid4()),
            amount=float(data.amount),
            date=data.date,
            type=data.type,
            category_id=data.category_id,
            category_name=get_category_name(data.category_id),
            description=data.description,
            created_at=now,
            updated_at=now,
        )
        records = self.raw_records()
        records.append(txn.model_dump(mode="json"))
        self.store.save(self.key, records)
        logger.info(
            f"transaction_created: id={txn.id} type={txn.type.value} amount={txn.amount}"
        )
        return txn

    def update(
        self,
        transaction_id: str,
        data: TransactionUpdate,
        *,
        now: Optional[datetime] = None,
    ) -> Transaction:
        records = self.raw_records()
        index = self._index_of(records, transaction_id)
        existing = Transaction.model_validate(records[index])

        merged: dict[str, object] = {
            "amount": Decimal(str(existing.amount)),
            "date": existing.date,
            "type": existing.type,
            "category_id": existing.category_id,
            "description": existing.description,
        }
        merged.update(data.model_dump(exclude_unset=True, exclude_none=True))
        validated = TransactionIn.model_validate(merged)

        updated = existing.model_copy(
            update={
                "amount": float(validated.amount),
                "date": validated.date,
                "type": validated.type,
                "category_id": validated.category_id,
                "category_name": get_category_name(validated.category_id),
                "description": validated.description,
                "updated_at": now or datetime.now(timezone.utc),
            }
        )
        records[index] = updated.model_dump(mode="json")
        self.store.save(self.key, records)
        logger.info(f"transaction_updated: id={transaction_id}")
        return updated

    def delete(self, transaction_id: str) -> None:
        records = self.raw_records()
        index = self._index_of(records, transaction_id)
        del records[index]
        self.store.save(self.key, records)
        logger.info(f"transaction_deleted: id={transaction_id}")

    @staticmethod
    def _index_of(records: list[dict], transaction_id: str) -> int:
        for index, record in enumerate(records):
            if isinstance(record, dict) and record.get("id") == transaction_id:
                return index
        raise TransactionNotFound(transaction_id)


class MetricsService:
    """Engine front door for the API, memoizing per store revision.

    Pass a shared ``cache`` dict to keep results across service instances;
    entries from older revisions of the same key are dropped on the next miss.
    """

    def __init__(
        self,
        session: Session,
        storage_key: Optional[str] = None,
        cache: Optional[dict[tuple, Any]] = None,
    ) -> None:
        self.transactions = TransactionService(session, storage_key)
        self._cache: dict[tuple, Any] = cache if cache is not None else {}

    def _cache_key(self, name: str, period: TimePeriod, today: date) -> tuple:
        kind = getattr(period.kind, "value", period.kind)
        return (
            self.transactions.key,
            self.transactions.revision(),
            name,
            kind,
            str(period.anchor_date),
            today,
        )

    def _memoized(self, key: tuple, compute: Callable[[], T]) -> T:
        if key not in self._cache:
            storage_key, revision = key[0], key[1]
            for cached in list(self._cache):
                if cached[0] == storage_key and cached[1] != revision:
                    self._cache.pop(cached, None)
            self._cache[key] = compute()
        return self._cache[key]

    def dashboard(
        self, period: TimePeriod, *, today: Optional[date] = None
    ) -> DashboardSummary:
        today = today or local_today()
        return self._memoized(
            self._cache_key("dashboard", period, today),
            lambda: compute_dashboard_summary(
                self.transactions.raw_records(), period, today=today
            ),
        )

    def balance_trend(
        self, period: TimePeriod, *, today: Optional[date] = None
    ) -> BalanceTrendData:
        today = today or local_today()
        return self._memoized(
            self._cache_key("trend", period, today),
            lambda: compute_balance_trend(
                self.transactions.raw_records(), period, today=today
            ),
        )

    def category_breakdown(
        self,
        period: TimePeriod,
        transaction_type: Union[BreakdownType, TransactionType, str] = BreakdownType.expense,
        *,
        today: Optional[date] = None,
    ) -> list[CategoryBreakdown]:
        _kind, date_range = resolve_time_period(period, today=today)
        clean, _skipped = normalize_transactions(self.transactions.raw_records())
        return calculate_category_breakdown(
            filter_by_date_range(clean, date_range), transaction_type
        )


class CSVService:
    def __init__(self, session: Session, storage_key: Optional[str] = None) -> None:
        self.transactions = TransactionService(session, storage_key)

    def export(self, filters: Optional[TransactionFilters] = None) -> str:
        transactions = self.transactions.list_all()
        if filters:
            transactions = apply_filters(transactions, filters)
        return export_transactions(transactions)
