from categories import (
    UNKNOWN_CATEGORY_NAME,
    category_exists,
    get_categories,
    get_category_by_id,
    get_category_name,
)
from models import BreakdownType, TransactionType


def test_catalogue_sizes() -> None:
    assert len(get_categories()) == 16
    assert len(get_categories(TransactionType.expense)) == 10
    assert len(get_categories("income")) == 6
    assert get_categories(BreakdownType.all) == get_categories()


def test_ids_are_unique_and_typed() -> None:
    categories = get_categories()
    assert len({c.id for c in categories}) == len(categories)
    assert all(c.type == TransactionType.income for c in get_categories("income"))


def test_lookup() -> None:
    assert get_category_by_id("housing").name == "Housing"
    assert get_category_by_id("pets") is None
    assert get_category_name("other-income") == "Other"
    assert get_category_name("pets") == UNKNOWN_CATEGORY_NAME
    assert category_exists("freelance")
    assert not category_exists("")


def test_unknown_catalogue_type_is_empty() -> None:
    assert get_categories("transfers") == ()
