"""Pydantic schemas for domain values and request/response validation."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, FrozenSet, List, Optional


class SortKey(str, Enum):
    """Catalog sort orders."""
    FEATURED = "featured"
    PRICE_LOW_HIGH = "price-low-high"
    PRICE_HIGH_LOW = "price-high-low"
    RATING = "rating"


class ProductRecord(BaseModel):
    """Product as seen by the catalog and cart logic."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: str = ""
    price: Decimal
    category: str
    images: List[str] = Field(default_factory=list)
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: bool = True
    featured: bool = False
    rating: Optional[float] = None


class CartRow(BaseModel):
    """Stored cart row."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    user_id: str
    product_id: str
    quantity: int
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None


class CartLine(BaseModel):
    """Cart row joined with its product. ``product`` is None when it was removed."""
    model_config = ConfigDict(frozen=True)

    row: CartRow
    product: Optional[ProductRecord] = None
    line_total: Optional[Decimal] = None


class CartView(BaseModel):
    """Derived cart state, recomputed on every read."""
    model_config = ConfigDict(frozen=True)

    lines: List[CartLine]
    total: Decimal
    item_count: int


class FilterCriteria(BaseModel):
    """Catalog filter and sort criteria."""
    model_config = ConfigDict(frozen=True)

    category: str = "all"
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    sizes: FrozenSet[str] = frozenset()
    search: str = ""
    sort: SortKey = SortKey.FEATURED


class ProductCreate(BaseModel):
    """Schema for creating a product."""
    name: str
    description: str
    price: Decimal = Field(..., max_digits=10, decimal_places=2)
    category: str
    images: List[str] = Field(default_factory=lambda: ["/placeholder.svg"])
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: bool = True
    featured: bool = False
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class ProductUpdate(BaseModel):
    """Schema for a partial product update."""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: Optional[bool] = None
    featured: Optional[bool] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class ProductResponse(BaseModel):
    """Schema for product response."""
    id: str
    name: str
    description: str
    price: float
    display_price: str
    currency: str
    category: str
    images: List[str]
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: bool
    featured: bool
    rating: Optional[float] = None


class AddToCartRequest(BaseModel):
    """Schema for add to cart request."""
    product_id: str
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None


class UpdateCartItemRequest(BaseModel):
    """Schema for changing a cart row quantity. Zero or less removes the row."""
    quantity: int


class AddToCartResponse(BaseModel):
    """Schema for add to cart response."""
    message: str
    cart_item_id: str
    product_name: str
    quantity: int


class CartItemResponse(BaseModel):
    """Schema for cart item in response."""
    id: str
    product_id: str
    product_name: Optional[str] = None
    price: Optional[float] = None
    quantity: int
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    subtotal: Optional[float] = None
    subtotal_formatted: Optional[str] = None
    available: bool


class CartResponse(BaseModel):
    """Schema for cart response."""
    user_id: str
    items: List[CartItemResponse]
    total: float
    total_formatted: str
    currency: str
    item_count: int


class CartCountResponse(BaseModel):
    """Schema for the cart badge count."""
    count: int


class ExchangeRatesResponse(BaseModel):
    """Schema for the current exchange rate table."""
    base: str
    rates: Dict[str, float]
    source: str
    updated_at: datetime
    warning: Optional[str] = None


class ConversionResponse(BaseModel):
    """Schema for a single conversion."""
    amount: float
    currency: str
    converted: float
    formatted: str


class RefreshResponse(BaseModel):
    """Schema for a forced rate refresh."""
    refreshed: bool
    source: str
    warning: Optional[str] = None


class AdminStatsResponse(BaseModel):
    """Schema for admin dashboard counters."""
    total_products: int
    featured_products: int
    in_stock_products: int
