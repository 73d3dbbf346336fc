"""Shared builders for tests."""

from decimal import Decimal

from schemas import CartRow, ProductRecord

USER_TOKEN = "user-token-123"
OTHER_USER_TOKEN = "test-token-789"
ADMIN_TOKEN = "admin-token-456"


def auth_headers(token: str = USER_TOKEN) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_record(product_id: str = "p1", **overrides) -> ProductRecord:
    """In-memory product for the pure catalog and cart functions."""
    data = {
        "id": product_id,
        "name": f"Product {product_id}",
        "description": "A product",
        "price": Decimal("10.00"),
        "category": "accessories",
        "images": ["/placeholder.svg"],
    }
    data.update(overrides)
    return ProductRecord(**data)


def make_row(row_id: str = "r1", **overrides) -> CartRow:
    data = {
        "id": row_id,
        "user_id": "user1",
        "product_id": "p1",
        "quantity": 1,
    }
    data.update(overrides)
    return CartRow(**data)
