import csv
from datetime import datetime
from io import StringIO
from typing import Callable, Iterable, Optional

from categories import get_category_by_id
from schemas import Transaction

CSV_HEADERS = ["Date", "Amount", "Type", "Category", "Description"]

_FORMULA_TRIGGERS = ("=", "+", "-", "@", "\t", "\r")


def sanitize_csv_value(value: Optional[str]) -> str:
    """
    Neutralise spreadsheet formulas by prefixing dangerous leading characters with a tab.
    """
    if value is None or value.strip() == "":
        return ""
    value = value.strip()
    if value.startswith(_FORMULA_TRIGGERS):
        return "\t" + value
    return value


def _catalogue_name(category_id: str) -> str:
    category = get_category_by_id(category_id)
    return category.name if category else "Unknown"


def export_transactions(
    transactions: Iterable[Transaction],
    *,
    include_headers: bool = True,
    category_name: Callable[[str], str] = _catalogue_name,
) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    if include_headers:
        writer.writerow(CSV_HEADERS)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                f"{txn.amount:.2f}",
                txn.type.value,
                sanitize_csv_value(category_name(txn.category_id)),
                sanitize_csv_value(txn.description),
            ]
        )
    return output.getvalue()


def generate_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"expense-tracker-{now:%Y%m%d-%H%M%S}.csv"
