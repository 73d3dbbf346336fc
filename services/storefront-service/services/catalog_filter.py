"""Catalog filtering and sorting."""
from typing import Iterable, List

from schemas import FilterCriteria, ProductRecord, SortKey


def _matches(product: ProductRecord, criteria: FilterCriteria) -> bool:
    """Return True when the product passes every active predicate."""
    if criteria.category != "all" and product.category != criteria.category:
        return False

    if criteria.min_price is not None and product.price < criteria.min_price:
        return False
    if criteria.max_price is not None and product.price > criteria.max_price:
        return False

    # Products without sizes (accessories, makeup) are not constrained by a size filter
    if criteria.sizes and product.sizes and not criteria.sizes.intersection(product.sizes):
        return False

    if criteria.search:
        needle = criteria.search.lower()
        if needle not in product.name.lower() and needle not in product.description.lower():
            return False

    return True


def sort_products(products: Iterable[ProductRecord], sort: SortKey) -> List[ProductRecord]:
    """
    Sort products by the given key.

    All orders are stable: products that compare equal keep their input order.
    Unknown keys fall back to the featured order (featured first).

    Args:
        products: Products to sort
        sort: Sort key

    Returns:
        New sorted list
    """
    if sort == SortKey.PRICE_LOW_HIGH:
        return sorted(products, key=lambda p: p.price)
    if sort == SortKey.PRICE_HIGH_LOW:
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort == SortKey.RATING:
        return sorted(products, key=lambda p: p.rating or 0, reverse=True)
    return sorted(products, key=lambda p: not p.featured)


def filter_products(products: Iterable[ProductRecord], criteria: FilterCriteria) -> List[ProductRecord]:
    """
    Apply category, price range, size and search predicates, then sort.

    Args:
        products: Candidate products, in their natural order
        criteria: Filter and sort criteria

    Returns:
        Products passing every predicate, in sort order
    """
    return sort_products((p for p in products if _matches(p, criteria)), criteria.sort)


def featured_products(products: Iterable[ProductRecord]) -> List[ProductRecord]:
    """Featured products in input order."""
    return [p for p in products if p.featured]
