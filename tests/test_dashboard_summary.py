from datetime import date

import pytest

from categories import UNKNOWN_CATEGORY_NAME
from metrics import (
    calculate_category_breakdown,
    calculate_net_balance,
    calculate_total_expenses,
    calculate_total_income,
    compute_dashboard_summary,
)
from models import BreakdownType, PeriodKind, TransactionType
from periods import FutureDate, InvalidDate, TimePeriod
from schemas import Transaction

TODAY = date(2026, 2, 20)


def _txn(
    txn_id: str,
    day: str,
    amount: float,
    txn_type: TransactionType = TransactionType.expense,
    category_id: str = "food",
) -> Transaction:
    return Transaction(
        id=txn_id,
        amount=amount,
        date=date.fromisoformat(day),
        type=txn_type,
        category_id=category_id,
    )


def test_expense_breakdown_sorted_by_amount() -> None:
    breakdown = calculate_category_breakdown(
        [
            _txn("a", "2026-02-01", 50.5),
            _txn("b", "2026-02-02", 150),
            _txn("c", "2026-02-03", 30, category_id="transport"),
        ],
        "expense",
    )

    assert [item.category_id for item in breakdown] == ["food", "transport"]
    food, transport = breakdown
    assert food.amount == pytest.approx(200.5)
    assert food.category_name == "Food & Dining"
    assert food.transaction_count == 2
    assert food.percentage == pytest.approx(86.98, abs=0.01)
    assert transport.amount == 30
    assert transport.category_name == "Transportation"
    assert transport.percentage == pytest.approx(13.02, abs=0.01)


def test_breakdown_filters_by_type() -> None:
    transactions = [
        _txn("a", "2026-02-01", 40),
        _txn("b", "2026-02-01", 1000, TransactionType.income, "salary"),
        _txn("c", "2026-02-01", 250, TransactionType.income, "bonus"),
    ]

    income = calculate_category_breakdown(transactions, TransactionType.income)
    assert [item.category_id for item in income] == ["salary", "bonus"]
    assert sum(item.percentage for item in income) == pytest.approx(100)

    everything = calculate_category_breakdown(transactions, BreakdownType.all)
    assert [item.category_id for item in everything] == ["salary", "bonus", "food"]
    assert everything[-1].percentage == pytest.approx(40 / 1290 * 100)


def test_breakdown_ties_keep_first_seen_category_first() -> None:
    breakdown = calculate_category_breakdown(
        [
            _txn("a", "2026-02-01", 25, category_id="utilities"),
            _txn("b", "2026-02-01", 25, category_id="education"),
            _txn("c", "2026-02-01", 25, category_id="housing"),
        ]
    )
    assert [item.category_id for item in breakdown] == [
        "utilities",
        "education",
        "housing",
    ]


def test_breakdown_of_empty_input_is_empty() -> None:
    assert calculate_category_breakdown([], "all") == []
    assert (
        calculate_category_breakdown(
            [_txn("a", "2026-02-01", 10, TransactionType.income, "gift")], "expense"
        )
        == []
    )


def test_breakdown_percentages_sum_to_hundred() -> None:
    amounts = [12.34, 0.01, 999.99, 45.6, 7, 13.13, 1.5]
    categories = ["food", "transport", "housing", "food", "shopping", "personal", "other-expense"]
    breakdown = calculate_category_breakdown(
        [
            _txn(str(i), "2026-02-01", amount, category_id=category)
            for i, (amount, category) in enumerate(zip(amounts, categories))
        ]
    )
    assert sum(item.percentage for item in breakdown) == pytest.approx(100, abs=0.01)
    assert [item.amount for item in breakdown] == sorted(
        (item.amount for item in breakdown), reverse=True
    )


def test_unknown_category_and_custom_lookup() -> None:
    transactions = [_txn("a", "2026-02-01", 5, category_id="pets")]

    assert calculate_category_breakdown(transactions)[0].category_name == (
        UNKNOWN_CATEGORY_NAME
    )
    named = calculate_category_breakdown(
        transactions, category_name=lambda category_id: category_id.title()
    )
    assert named[0].category_name == "Pets"


def test_breakdown_rejects_unknown_type() -> None:
    with pytest.raises(ValueError):
        calculate_category_breakdown([], "transfers")


def test_totals() -> None:
    transactions = [
        _txn("a", "2026-02-01", 100, TransactionType.income, "salary"),
        _txn("b", "2026-02-01", 30),
        _txn("c", "2026-02-02", 20),
    ]
    assert calculate_total_income(transactions) == 100
    assert calculate_total_expenses(transactions) == 50
    assert calculate_net_balance(transactions) == 50
    assert calculate_net_balance(iter(transactions)) == 50


def test_month_without_activity_is_all_zero() -> None:
    summary = compute_dashboard_summary(
        [
            _txn("a", "2026-01-31", 80),
            _txn("b", "2026-03-01", 10, TransactionType.income, "gift"),
        ],
        TimePeriod("month", "2026-02-15"),
        today=date(2026, 3, 5),
    )

    assert summary.period.start == date(2026, 2, 1)
    assert summary.period.end == date(2026, 2, 28)
    assert summary.period.kind == PeriodKind.month
    assert summary.total_income == 0
    assert summary.total_expenses == 0
    assert summary.net_balance == 0
    assert summary.category_breakdown == []
    assert summary.transaction_count.total == 0


def test_week_summary_totals_counts_and_breakdown() -> None:
    transactions = [
        _txn("sun-before", "2026-02-15", 500, TransactionType.income, "salary"),
        _txn("mon", "2026-02-16", 1200, TransactionType.income, "salary"),
        _txn("tue", "2026-02-17", 45.5),
        _txn("wed", "2026-02-18", 60, category_id="transport"),
        _txn("sun", "2026-02-22", 4.5),
    ]

    summary = compute_dashboard_summary(
        transactions, TimePeriod(PeriodKind.week, date(2026, 2, 18)), today=TODAY
    )

    assert (summary.period.start, summary.period.end) == (
        date(2026, 2, 16),
        date(2026, 2, 22),
    )
    assert summary.total_income == 1200
    assert summary.total_expenses == 110
    assert summary.net_balance == summary.total_income - summary.total_expenses
    assert summary.transaction_count.income == 1
    assert summary.transaction_count.expense == 3
    assert summary.transaction_count.total == 4
    assert [item.category_id for item in summary.category_breakdown] == [
        "salary",
        "transport",
        "food",
    ]
    assert sum(i.percentage for i in summary.category_breakdown) == pytest.approx(100)


def test_day_summary_is_single_day() -> None:
    summary = compute_dashboard_summary(
        [_txn("a", "2026-02-19", 9), _txn("b", "2026-02-20", 3)],
        TimePeriod("day", "2026-02-20"),
        today=TODAY,
    )
    assert summary.total_expenses == 3
    assert summary.transaction_count.total == 1


def test_summary_skips_corrupt_records() -> None:
    summary = compute_dashboard_summary(
        [
            {"id": "a", "amount": 10, "date": "2026-02-10", "type": "expense", "category_id": "food"},
            {"id": "b", "amount": -3, "date": "2026-02-10", "type": "expense", "category_id": "food"},
            {"id": "c", "amount": 4, "date": "2026-02-31", "type": "expense", "category_id": "food"},
        ],
        TimePeriod("month", "2026-02-10"),
        today=TODAY,
    )
    assert summary.skipped_records == 2
    assert summary.total_expenses == 10


def test_summary_is_idempotent() -> None:
    transactions = [_txn("a", "2026-02-10", 10), _txn("b", "2026-02-11", 20)]
    period = TimePeriod("month", "2026-02-10")
    first = compute_dashboard_summary(transactions, period, today=TODAY)
    second = compute_dashboard_summary(transactions, period, today=TODAY)
    assert first == second
    assert first.model_dump() == second.model_dump()


def test_summary_rejects_future_and_malformed_anchor() -> None:
    with pytest.raises(FutureDate):
        compute_dashboard_summary([], TimePeriod("month", "2027-12-31"), today=TODAY)
    with pytest.raises(InvalidDate):
        compute_dashboard_summary([], TimePeriod("month", "31.12.2025"), today=TODAY)
