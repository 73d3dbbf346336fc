"""Unit tests for catalog filtering and sorting."""

from decimal import Decimal

from helpers import make_record
from schemas import FilterCriteria, SortKey
from services.catalog_filter import featured_products, filter_products, sort_products


def ids(products):
    return [p.id for p in products]


CATALOG = [
    make_record("dress", name="Elegant Summer Dress", price=Decimal("69.99"), category="clothing",
                sizes=["S", "M", "L"], featured=True, rating=4.5,
                description="Floral pattern dress"),
    make_record("jacket", name="Classic Denim Jacket", price=Decimal("89.99"), category="clothing",
                sizes=["M", "XL"], featured=False, rating=4.2,
                description="Versatile denim jacket"),
    make_record("bag", name="Leather Handbag", price=Decimal("149.99"), category="accessories",
                featured=True, rating=4.7, description="Handcrafted with gold accents"),
    make_record("lipstick", name="Lipstick Set", price=Decimal("45.99"), category="makeup",
                featured=False, rating=None, description="Long-lasting"),
]


class TestPredicates:
    """Each predicate narrows the list independently."""

    def test_no_constraints_keeps_everything(self):
        result = filter_products(CATALOG, FilterCriteria())
        assert sorted(ids(result)) == sorted(ids(CATALOG))

    def test_category(self):
        result = filter_products(CATALOG, FilterCriteria(category="clothing"))
        assert set(ids(result)) == {"dress", "jacket"}

    def test_category_all(self):
        assert len(filter_products(CATALOG, FilterCriteria(category="all"))) == len(CATALOG)

    def test_price_bounds_are_inclusive(self):
        criteria = FilterCriteria(min_price=Decimal("45.99"), max_price=Decimal("89.99"))
        result = filter_products(CATALOG, criteria)
        assert set(ids(result)) == {"dress", "jacket", "lipstick"}

    def test_size_intersection(self):
        result = filter_products(CATALOG, FilterCriteria(sizes=frozenset({"XL"})))
        assert set(ids(result)) == {"jacket", "bag", "lipstick"}
        assert "dress" not in ids(result)

    def test_size_filter_keeps_products_without_sizes(self):
        products = [
            make_record("d", sizes=["M"], category="clothing"),
            make_record("b", sizes=None),
            make_record("e", sizes=[]),
        ]
        result = filter_products(products, FilterCriteria(sizes=frozenset({"M"})))
        assert ids(result) == ["d", "b", "e"]

    def test_size_filter_within_clothing(self):
        criteria = FilterCriteria(category="clothing", sizes=frozenset({"XL"}))
        assert ids(filter_products(CATALOG, criteria)) == ["jacket"]

    def test_search_is_case_insensitive_on_name(self):
        result = filter_products(CATALOG, FilterCriteria(search="DENIM"))
        assert ids(result) == ["jacket"]

    def test_search_matches_description(self):
        result = filter_products(CATALOG, FilterCriteria(search="gold accents"))
        assert ids(result) == ["bag"]

    def test_search_without_match(self):
        assert filter_products(CATALOG, FilterCriteria(search="sneakers")) == []


class TestSorting:
    """Sort orders are stable and featured-first is a proper total order."""

    def test_price_low_high_scenario(self):
        products = [
            make_record("a", price=Decimal("69.99"), category="clothing", featured=True),
            make_record("b", price=Decimal("89.99"), category="clothing", featured=False),
        ]
        criteria = FilterCriteria(category="clothing", sort=SortKey.PRICE_LOW_HIGH)
        result = filter_products(products, criteria)
        assert [p.price for p in result] == [Decimal("69.99"), Decimal("89.99")]

    def test_price_high_low(self):
        result = sort_products(CATALOG, SortKey.PRICE_HIGH_LOW)
        assert ids(result) == ["bag", "jacket", "dress", "lipstick"]

    def test_rating_treats_missing_as_zero(self):
        result = sort_products(CATALOG, SortKey.RATING)
        assert ids(result) == ["bag", "dress", "jacket", "lipstick"]

    def test_featured_first_keeps_input_order(self):
        result = sort_products(CATALOG, SortKey.FEATURED)
        assert ids(result) == ["dress", "bag", "jacket", "lipstick"]

    def test_featured_order_does_not_depend_on_input_permutation(self):
        reversed_result = sort_products(list(reversed(CATALOG)), SortKey.FEATURED)
        assert ids(reversed_result) == ["bag", "dress", "lipstick", "jacket"]

    def test_ties_preserve_input_order(self):
        products = [make_record(str(i), price=Decimal("5")) for i in range(5)]
        assert ids(sort_products(products, SortKey.PRICE_LOW_HIGH)) == ["0", "1", "2", "3", "4"]
        assert ids(sort_products(products, SortKey.PRICE_HIGH_LOW)) == ["0", "1", "2", "3", "4"]

    def test_plain_string_sort_key(self):
        assert ids(sort_products(CATALOG, "price-low-high"))[0] == "lipstick"


class TestProperties:
    def test_filter_is_idempotent(self):
        criteria = FilterCriteria(category="clothing", sizes=frozenset({"M"}), sort=SortKey.RATING)
        once = filter_products(CATALOG, criteria)
        twice = filter_products(once, criteria)
        assert ids(once) == ids(twice)

    def test_input_is_not_modified(self):
        before = ids(CATALOG)
        filter_products(CATALOG, FilterCriteria(sort=SortKey.PRICE_HIGH_LOW))
        assert ids(CATALOG) == before

    def test_featured_products(self):
        assert ids(featured_products(CATALOG)) == ["dress", "bag"]
