"""Cart management service."""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import redis
from opentelemetry import trace

from config import CART_COUNT_TTL_SECONDS, SIZED_CATEGORIES
from exceptions import ValidationError
from models import CartItem
from monitoring import (
    cart_additions_counter,
    cart_merges_counter,
    cart_removals_counter,
    stale_cart_lines_counter
)
from schemas import CartRow, CartView, ProductRecord
from services import cart_aggregator
from services.catalog_service import CatalogService
from services.sequencing import MutationQueue

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing shopping carts."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        catalog_service: CatalogService,
        mutation_queue: MutationQueue
    ):
        """
        Initialize cart service.

        Args:
            redis_client: Redis client caching the cart badge count, or None
            catalog_service: Catalog service used to resolve products
            mutation_queue: Shared per-user write serializer
        """
        self.redis_client = redis_client
        self.catalog_service = catalog_service
        self.mutation_queue = mutation_queue
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    def _count_key(user_id: str) -> str:
        return f"cart:{user_id}:count"

    def _cache_count(self, user_id: str, rows: List[CartRow]) -> None:
        """Store the badge count; the cache is best-effort."""
        if self.redis_client is None:
            return
        count = sum(row.quantity for row in rows)
        cache_key = self._count_key(user_id)
        with self.tracer.start_as_current_span("cache.set") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.key", cache_key)
            try:
                self.redis_client.set(cache_key, count, ex=CART_COUNT_TTL_SECONDS)
            except redis.RedisError as e:
                logger.warning("Failed to cache cart count", extra={
                    "user_id": user_id,
                    "error": str(e)
                })

    def get_cart_rows(self, db: Session, user_id: str) -> List[CartRow]:
        """
        Get cart rows for user.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Rows in insertion order
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            cart_items = (
                db.query(CartItem)
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.created_at, CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(cart_items))

        return [CartRow.model_validate(item) for item in cart_items]

    def get_cart(self, db: Session, user_id: str) -> CartView:
        """
        Get user's cart contents joined with products.

        Lines whose product was deleted are kept with no product so callers
        can render a placeholder.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart view with line totals and grand total
        """
        rows = self.get_cart_rows(db, user_id)
        products = self.catalog_service.get_products_by_ids(db, (row.product_id for row in rows))
        view = cart_aggregator.compute_view(rows, products)

        stale = [line.row.id for line in view.lines if line.product is None]
        if stale:
            stale_cart_lines_counter.add(len(stale))
            logger.warning("Cart has lines for removed products", extra={
                "user_id": user_id,
                "cart_item_ids": stale
            })
        return view

    def get_item_count(self, db: Session, user_id: str) -> int:
        """Badge count (sum of quantities), served from Redis when cached."""
        if self.redis_client is not None:
            try:
                cached = self.redis_client.get(self._count_key(user_id))
                if cached is not None:
                    return int(cached)
            except redis.RedisError as e:
                logger.warning("Failed to read cached cart count", extra={
                    "user_id": user_id,
                    "error": str(e)
                })

        rows = self.get_cart_rows(db, user_id)
        self._cache_count(user_id, rows)
        return sum(row.quantity for row in rows)

    @staticmethod
    def _check_selection(product: ProductRecord, size: Optional[str], color: Optional[str]) -> None:
        """
        Apply the product page rules for a cart selection.

        Raises:
            ValidationError: If the product cannot be added with this selection
        """
        if not product.in_stock:
            raise ValidationError("This product is currently out of stock")
        if product.category in SIZED_CATEGORIES and product.sizes and size is None:
            raise ValidationError("Please select a size for this product")
        if size is not None and size not in (product.sizes or []):
            raise ValidationError(f"Size {size} is not available for this product")
        if color is not None and color not in (product.colors or []):
            raise ValidationError(f"Color {color} is not available for this product")

    def _add_item(
        self,
        db: Session,
        user_id: str,
        product_id: str,
        quantity: int,
        size: Optional[str],
        color: Optional[str]
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")
        size = cart_aggregator.normalize_option(size)
        color = cart_aggregator.normalize_option(color)

        product = self.catalog_service.get_product(db, product_id)
        self._check_selection(product, size, color)

        rows = self.get_cart_rows(db, user_id)
        updated = cart_aggregator.add_or_merge_item(rows, user_id, product_id, quantity, size, color)
        target = cart_aggregator.find_variant(updated, user_id, product_id, size, color)

        with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)
            db_span.set_attribute("product.id", product_id)

            existing = (
                db.query(CartItem)
                .filter(CartItem.id == target.id, CartItem.user_id == user_id)
                .first()
            )
            merged = existing is not None
            if merged:
                db_span.set_attribute("db.operation", "UPDATE")
                existing.quantity = target.quantity
            else:
                db_span.set_attribute("db.operation", "INSERT")
                db.add(CartItem(**target.model_dump()))
            db.commit()

            db_span.set_attribute("cart_item.id", target.id)

        self._cache_count(user_id, updated)

        cart_additions_counter.add(1, {"category": product.category})
        if merged:
            cart_merges_counter.add(1, {"category": product.category})

        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity,
            "line_quantity": target.quantity,
            "selected_size": size,
            "selected_color": color,
            "merged": merged
        })

        return {
            "cart_item_id": target.id,
            "product_name": product.name,
            "quantity": target.quantity
        }

    async def add_to_cart(
        self,
        db: Session,
        user_id: str,
        product_id: str,
        quantity: int,
        size: Optional[str] = None,
        color: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Add item to user's cart, merging with an existing line of the same variant.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            quantity: Quantity to add
            size: Selected size or None
            color: Selected color or None

        Returns:
            Result with the affected cart line

        Raises:
            NotFoundError: If the product does not exist
            ValidationError: If quantity or selection is invalid
        """
        return await self.mutation_queue.run(
            user_id, self._add_item, db, user_id, product_id, quantity, size, color
        )

    def _set_quantity(self, db: Session, user_id: str, item_id: str, quantity: int) -> Optional[CartRow]:
        rows = self.get_cart_rows(db, user_id)
        updated = cart_aggregator.set_quantity(rows, item_id, quantity)
        target = next((row for row in updated if row.id == item_id), None)

        item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).first()
        if target is None:
            db.delete(item)
            cart_removals_counter.add(1, {"reason": "zero_quantity"})
        else:
            item.quantity = target.quantity
        db.commit()

        self._cache_count(user_id, updated)
        logger.info("Updated cart item quantity", extra={
            "user_id": user_id,
            "cart_item_id": item_id,
            "quantity": quantity,
            "removed": target is None
        })
        return target

    async def update_quantity(self, db: Session, user_id: str, item_id: str, quantity: int) -> Optional[CartRow]:
        """
        Set the quantity of a cart line. Zero or less removes the line.

        Returns:
            The updated row, or None when it was removed

        Raises:
            NotFoundError: If the user has no such line
        """
        return await self.mutation_queue.run(user_id, self._set_quantity, db, user_id, item_id, quantity)

    def _remove_item(self, db: Session, user_id: str, item_id: str) -> bool:
        rows = self.get_cart_rows(db, user_id)
        updated = cart_aggregator.remove_item(rows, item_id)
        if len(updated) == len(rows):
            return False

        db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).delete()
        db.commit()

        self._cache_count(user_id, updated)
        cart_removals_counter.add(1, {"reason": "removed"})
        logger.info("Removed cart item", extra={
            "user_id": user_id,
            "cart_item_id": item_id
        })
        return True

    async def remove_item(self, db: Session, user_id: str, item_id: str) -> bool:
        """
        Remove a cart line. Removing an absent line succeeds with no change.

        Returns:
            True if a line was deleted
        """
        return await self.mutation_queue.run(user_id, self._remove_item, db, user_id, item_id)

    def _clear_cart(self, db: Session, user_id: str) -> int:
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            deleted_count = db.query(CartItem).filter(CartItem.user_id == user_id).delete()
            db.commit()

            db_span.set_attribute("db.rows_affected", deleted_count)

        self._cache_count(user_id, [])
        if deleted_count:
            cart_removals_counter.add(deleted_count, {"reason": "cleared"})
        logger.info("Cleared cart", extra={
            "user_id": user_id,
            "deleted_count": deleted_count
        })
        return deleted_count

    async def clear_cart(self, db: Session, user_id: str) -> int:
        """
        Clear user's cart. Clearing an empty cart is a no-op.

        Returns:
            Number of lines deleted
        """
        return await self.mutation_queue.run(user_id, self._clear_cart, db, user_id)
