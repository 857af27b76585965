from dataclasses import dataclass
from typing import Optional, Union

from models import BreakdownType, TransactionType

UNKNOWN_CATEGORY_NAME = "(Unknown Category)"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: TransactionType
    icon: str
    is_default: bool = True


EXPENSE_CATEGORIES: tuple[Category, ...] = (
    Category("food", "Food & Dining", TransactionType.expense, "🍔"),
    Category("transport", "Transportation", TransactionType.expense, "🚗"),
    Category("entertainment", "Entertainment", TransactionType.expense, "🎬"),
    Category("utilities", "Utilities", TransactionType.expense, "⚡"),
    Category("shopping", "Shopping", TransactionType.expense, "🛍️"),
    Category("healthcare", "Healthcare", TransactionType.expense, "🏥"),
    Category("education", "Education", TransactionType.expense, "📚"),
    Category("personal", "Personal Care", TransactionType.expense, "💇"),
    Category("housing", "Housing", TransactionType.expense, "🏠"),
    Category("other-expense", "Other", TransactionType.expense, "📦"),
)

INCOME_CATEGORIES: tuple[Category, ...] = (
    Category("salary", "Salary", TransactionType.income, "💼"),
    Category("freelance", "Freelance", TransactionType.income, "💻"),
    Category("investment", "Investment", TransactionType.income, "📈"),
    Category("gift", "Gift", TransactionType.income, "🎁"),
    Category("bonus", "Bonus", TransactionType.income, "💰"),
    Category("other-income", "Other", TransactionType.income, "💵"),
)

_BY_ID: dict[str, Category] = {
    cat.id: cat for cat in EXPENSE_CATEGORIES + INCOME_CATEGORIES
}


def get_categories(
    type: Union[TransactionType, BreakdownType, str] = BreakdownType.all,
) -> tuple[Category, ...]:
    value = getattr(type, "value", type)
    if value == BreakdownType.all.value:
        return EXPENSE_CATEGORIES + INCOME_CATEGORIES
    if value == TransactionType.expense.value:
        return EXPENSE_CATEGORIES
    if value == TransactionType.income.value:
        return INCOME_CATEGORIES
    return ()


def get_category_by_id(category_id: str) -> Optional[Category]:
    return _BY_ID.get(category_id)


def get_category_name(category_id: str) -> str:
    category = get_category_by_id(category_id)
    return category.name if category else UNKNOWN_CATEGORY_NAME


def category_exists(category_id: str) -> bool:
    return category_id in _BY_ID
