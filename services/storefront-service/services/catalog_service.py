"""Catalog reads and admin product maintenance."""
import logging
from typing import Dict, Iterable, List
from uuid import uuid4
from sqlalchemy.orm import Session
from opentelemetry import trace

from exceptions import NotFoundError, ValidationError
from models import Product
from monitoring import catalog_changes_counter, product_views_counter
from schemas import FilterCriteria, ProductCreate, ProductRecord, ProductUpdate
from services.catalog_filter import featured_products, filter_products

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("name", "description", "category")


def _validate_product_fields(fields: Dict) -> None:
    """
    Check the fields of a product create/update payload.

    Raises:
        ValidationError: On a blank required text field, a non-positive price
            or an empty image list
    """
    missing = [
        name for name in REQUIRED_TEXT_FIELDS
        if name in fields and not (fields[name] or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if "price" in fields and (fields["price"] is None or fields["price"] <= 0):
        raise ValidationError("price must be > 0")
    if "images" in fields and not fields["images"]:
        raise ValidationError("at least one image is required")
    for flag in ("in_stock", "featured"):
        if flag in fields and fields[flag] is None:
            raise ValidationError(f"{flag} cannot be null")


class CatalogService:
    """Service for reading and maintaining the product catalog."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def list_products(self, db: Session) -> List[ProductRecord]:
        """
        Load every product in catalog order (oldest first).

        Args:
            db: Database session

        Returns:
            All products
        """
        with self.tracer.start_as_current_span("db.query.list_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            rows = db.query(Product).order_by(Product.created_at, Product.id).all()

            db_span.set_attribute("db.rows_returned", len(rows))

        return [ProductRecord.model_validate(row) for row in rows]

    def search(self, db: Session, criteria: FilterCriteria) -> List[ProductRecord]:
        """
        Filter and sort the catalog.

        Args:
            db: Database session
            criteria: Filter and sort criteria

        Returns:
            Matching products in sort order
        """
        products = filter_products(self.list_products(db), criteria)

        span = trace.get_current_span()
        span.set_attribute("catalog.category", criteria.category)
        span.set_attribute("catalog.sort", criteria.sort.value)
        span.set_attribute("catalog.results", len(products))

        product_views_counter.add(1, {
            "category": criteria.category,
            "sort": criteria.sort.value
        })
        return products

    def featured(self, db: Session) -> List[ProductRecord]:
        return featured_products(self.list_products(db))

    def get_product(self, db: Session, product_id: str) -> ProductRecord:
        """
        Load a single product.

        Raises:
            NotFoundError: If the product does not exist
        """
        row = db.query(Product).filter(Product.id == product_id).first()
        if row is None:
            raise NotFoundError("Product not found")
        return ProductRecord.model_validate(row)

    def get_products_by_ids(self, db: Session, product_ids: Iterable[str]) -> List[ProductRecord]:
        """Load the products that still exist among ``product_ids``."""
        ids = sorted(set(product_ids))
        if not ids:
            return []
        with self.tracer.start_as_current_span("db.query.get_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            rows = db.query(Product).filter(Product.id.in_(ids)).all()

            db_span.set_attribute("db.rows_returned", len(rows))

        return [ProductRecord.model_validate(row) for row in rows]

    def create_product(self, db: Session, data: ProductCreate) -> ProductRecord:
        """
        Add a product to the catalog.

        Raises:
            ValidationError: If a required field is missing; nothing is written
        """
        fields = data.model_dump()
        _validate_product_fields(fields)

        product = Product(id=str(uuid4()), **fields)
        db.add(product)
        db.commit()
        db.refresh(product)

        catalog_changes_counter.add(1, {"operation": "create"})
        logger.info("Product created", extra={
            "product_id": product.id,
            "product_name": product.name,
            "category": product.category
        })
        return ProductRecord.model_validate(product)

    def update_product(self, db: Session, product_id: str, data: ProductUpdate) -> ProductRecord:
        """
        Apply a partial update. Only fields present in the payload change.

        Raises:
            NotFoundError: If the product does not exist
            ValidationError: If an updated field is invalid; nothing is written
        """
        fields = data.model_dump(exclude_unset=True)
        _validate_product_fields(fields)

        product = db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product not found")

        for name, value in fields.items():
            setattr(product, name, value)
        db.commit()
        db.refresh(product)

        catalog_changes_counter.add(1, {"operation": "update"})
        logger.info("Product updated", extra={
            "product_id": product_id,
            "fields": sorted(fields)
        })
        return ProductRecord.model_validate(product)

    def delete_product(self, db: Session, product_id: str) -> None:
        """
        Remove a product. Cart rows pointing at it are kept and render as stale.

        Raises:
            NotFoundError: If the product does not exist
        """
        product = db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product not found")

        db.delete(product)
        db.commit()

        catalog_changes_counter.add(1, {"operation": "delete"})
        logger.info("Product deleted", extra={"product_id": product_id})

    def stats(self, db: Session) -> Dict[str, int]:
        """Counters for the admin dashboard."""
        return {
            "total_products": db.query(Product).count(),
            "featured_products": db.query(Product).filter(Product.featured.is_(True)).count(),
            "in_stock_products": db.query(Product).filter(Product.in_stock.is_(True)).count(),
        }
