"""Products API router."""
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from opentelemetry import trace

from database import get_db
from dependencies import get_catalog_service, get_currency_service, get_display_currency
from exceptions import StorefrontError
from monitoring import product_detail_views_counter
from schemas import FilterCriteria, ProductRecord, ProductResponse, SortKey
from services.catalog_service import CatalogService
from services.currency_service import CurrencyService

router = APIRouter(prefix="/products", tags=["products"])


def to_response(product: ProductRecord, currency: str, currency_service: CurrencyService) -> ProductResponse:
    """Render a product with its price in the display currency."""
    return ProductResponse(
        **product.model_dump(exclude={"price"}),
        price=float(product.price),
        display_price=currency_service.format_price(product.price, currency),
        currency=currency
    )


@router.get("", response_model=List[ProductResponse])
async def list_products(
    category: str = Query("all", description="Category slug or 'all'"),
    min_price: Optional[Decimal] = Query(None, ge=0, description="Inclusive lower price bound"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="Inclusive upper price bound"),
    sizes: List[str] = Query([], description="Accepted sizes; repeat the parameter for several"),
    search: str = Query("", description="Case-insensitive match against name or description"),
    sort: SortKey = Query(SortKey.FEATURED),
    currency: str = Depends(get_display_currency),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """
    Browse the catalog.

    Examples:
    - GET /products?category=clothing&sort=price-low-high
    - GET /products?sizes=M&sizes=L&max_price=100&currency=EUR
    - GET /products?search=leather
    """
    criteria = FilterCriteria(
        category=category,
        min_price=min_price,
        max_price=max_price,
        sizes=frozenset(sizes),
        search=search.strip(),
        sort=sort
    )
    products = catalog.search(db, criteria)
    return [to_response(p, currency, currency_service) for p in products]


@router.get("/featured", response_model=List[ProductResponse])
async def list_featured(
    currency: str = Depends(get_display_currency),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Featured products for the home page."""
    return [to_response(p, currency, currency_service) for p in catalog.featured(db)]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str = Path(..., description="Product ID"),
    currency: str = Depends(get_display_currency),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Get product details."""
    try:
        product = catalog.get_product(db, product_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    product_detail_views_counter.add(1, {"category": product.category})

    return to_response(product, currency, currency_service)
