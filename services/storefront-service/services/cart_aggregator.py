"""Cart merge, quantity and view computation.

These functions never mutate their inputs; every mutation returns a new list
of rows. Size and color selections are normalized so that ``None``, ``""`` and
whitespace all mean "no selection", which equals only itself.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from exceptions import NotFoundError, ValidationError
from schemas import CartLine, CartRow, CartView, ProductRecord

VariantKey = Tuple[str, str, Optional[str], Optional[str]]


def normalize_option(value: Optional[str]) -> Optional[str]:
    """Collapse every form of "no selection" to None and strip real values."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def variant_key(user_id: str, product_id: str, size: Optional[str], color: Optional[str]) -> VariantKey:
    return user_id, product_id, normalize_option(size), normalize_option(color)


def row_key(row: CartRow) -> VariantKey:
    return variant_key(row.user_id, row.product_id, row.selected_size, row.selected_color)


def find_variant(
    rows: Iterable[CartRow],
    user_id: str,
    product_id: str,
    size: Optional[str] = None,
    color: Optional[str] = None,
) -> Optional[CartRow]:
    """Return the row holding this (user, product, size, color), if any."""
    key = variant_key(user_id, product_id, size, color)
    return next((row for row in rows if row_key(row) == key), None)


def add_or_merge_item(
    rows: List[CartRow],
    user_id: str,
    product_id: str,
    quantity: int,
    size: Optional[str] = None,
    color: Optional[str] = None,
) -> List[CartRow]:
    """
    Add a line to the cart, merging into an existing line of the same variant.

    Args:
        rows: Current cart rows
        user_id: Owner of the cart
        product_id: Product to add
        quantity: Quantity to add, must be positive
        size: Selected size or None
        color: Selected color or None

    Returns:
        Updated rows. A merged row keeps its id and position; a new row is appended.

    Raises:
        ValidationError: If quantity is not positive
    """
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    existing = find_variant(rows, user_id, product_id, size, color)
    if existing is not None:
        merged = existing.model_copy(update={"quantity": existing.quantity + quantity})
        return [merged if row.id == existing.id else row for row in rows]

    new_row = CartRow(
        id=str(uuid4()),
        user_id=user_id,
        product_id=product_id,
        quantity=quantity,
        selected_size=normalize_option(size),
        selected_color=normalize_option(color),
    )
    return [*rows, new_row]


def set_quantity(rows: List[CartRow], row_id: str, quantity: int) -> List[CartRow]:
    """
    Replace the quantity of a row. Zero or less removes the row.

    Raises:
        NotFoundError: If no row has this id
    """
    if not any(row.id == row_id for row in rows):
        raise NotFoundError("Cart item not found")

    if quantity <= 0:
        return remove_item(rows, row_id)
    return [row.model_copy(update={"quantity": quantity}) if row.id == row_id else row for row in rows]


def remove_item(rows: List[CartRow], row_id: str) -> List[CartRow]:
    """Remove a row. Removing an absent row is a no-op."""
    return [row for row in rows if row.id != row_id]


def clear(rows: List[CartRow], user_id: str) -> List[CartRow]:
    """Remove every row belonging to the user."""
    return [row for row in rows if row.user_id != user_id]


def compute_view(rows: Iterable[CartRow], products: Iterable[ProductRecord]) -> CartView:
    """
    Join rows to products and compute line totals and the grand total.

    A row whose product cannot be found stays in the view with no product and
    contributes nothing to the total. Totals are exact decimals; rounding is a
    display concern.
    """
    by_id: Dict[str, ProductRecord] = {p.id: p for p in products}

    lines = []
    total = Decimal("0")
    item_count = 0
    for row in rows:
        product = by_id.get(row.product_id)
        line_total = None
        if product is not None:
            line_total = product.price * row.quantity
            total += line_total
        item_count += row.quantity
        lines.append(CartLine(row=row, product=product, line_total=line_total))

    return CartView(lines=lines, total=total, item_count=item_count)
