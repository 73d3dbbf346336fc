"""Dependency injection for services."""
from typing import Any
from fastapi import HTTPException, Query, Request

from config import DEFAULT_CURRENCY
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.currency_service import CurrencyService


def get_redis(request: Request) -> Any:
    """Get Redis client from app state."""
    return request.app.state.redis_client


def get_catalog_service() -> CatalogService:
    """Get catalog service instance."""
    return CatalogService()


def get_cart_service(request: Request) -> CartService:
    """Get cart service instance bound to the shared mutation queue."""
    return CartService(
        redis_client=request.app.state.redis_client,
        catalog_service=get_catalog_service(),
        mutation_queue=request.app.state.mutation_queue
    )


def get_currency_service(request: Request) -> CurrencyService:
    """Get the process-wide currency service."""
    return request.app.state.currency_service


def get_display_currency(
    request: Request,
    currency: str = Query(DEFAULT_CURRENCY, description="Display currency code (e.g., USD, EUR, JPY)")
) -> str:
    """Validate the requested display currency against the live rate table."""
    code = currency.upper()
    if not request.app.state.currency_service.supports(code):
        raise HTTPException(status_code=400, detail=f"Unsupported currency: {currency}")
    return code
