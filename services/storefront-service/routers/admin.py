"""Admin API router."""
from fastapi import APIRouter, Depends, HTTPException, Path, Response
from sqlalchemy.orm import Session
import logging

from auth import CurrentUser, require_admin
from config import DEFAULT_CURRENCY
from database import get_db
from dependencies import get_catalog_service, get_currency_service
from exceptions import StorefrontError
from routers.products import to_response
from schemas import AdminStatsResponse, ProductCreate, ProductResponse, ProductUpdate
from services.catalog_service import CatalogService
from services.currency_service import CurrencyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Dashboard counters - requires admin role."""
    return catalog.stats(db)


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(
    request: ProductCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Add a product to the catalog - requires admin role."""
    try:
        product = catalog.create_product(db, request)
    except StorefrontError as e:
        logger.warning("Product creation rejected", extra={
            "admin_id": user.user_id,
            "error": str(e)
        })
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return to_response(product, DEFAULT_CURRENCY, currency_service)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    request: ProductUpdate,
    product_id: str = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Partially update a product - requires admin role."""
    try:
        product = catalog.update_product(db, product_id, request)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return to_response(product, DEFAULT_CURRENCY, currency_service)


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(
    product_id: str = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Remove a product - requires admin role."""
    try:
        catalog.delete_product(db, product_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return Response(status_code=204)
