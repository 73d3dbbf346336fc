"""Cart API router."""
from fastapi import APIRouter, Depends, HTTPException, Path, Response
from sqlalchemy.orm import Session

from auth import CurrentUser, get_current_user
from database import get_db
from dependencies import get_cart_service, get_currency_service, get_display_currency
from exceptions import StorefrontError
from schemas import (
    AddToCartRequest,
    AddToCartResponse,
    CartCountResponse,
    CartItemResponse,
    CartResponse,
    CartView,
    UpdateCartItemRequest
)
from services.cart_service import CartService
from services.currency_service import CurrencyService

router = APIRouter(prefix="/cart", tags=["cart"])


def to_response(user_id: str, view: CartView, currency: str, currency_service: CurrencyService) -> CartResponse:
    """Render a cart view; amounts are rounded only here."""
    items = []
    for line in view.lines:
        product = line.product
        items.append(CartItemResponse(
            id=line.row.id,
            product_id=line.row.product_id,
            product_name=product.name if product else None,
            price=float(product.price) if product else None,
            quantity=line.row.quantity,
            selected_size=line.row.selected_size,
            selected_color=line.row.selected_color,
            subtotal=float(line.line_total) if line.line_total is not None else None,
            subtotal_formatted=(
                currency_service.format_price(line.line_total, currency)
                if line.line_total is not None else None
            ),
            available=product is not None
        ))

    return CartResponse(
        user_id=user_id,
        items=items,
        total=float(view.total),
        total_formatted=currency_service.format_price(view.total, currency),
        currency=currency,
        item_count=view.item_count
    )


@router.get("", response_model=CartResponse)
async def get_cart(
    currency: str = Depends(get_display_currency),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Get user's cart - requires authentication."""
    view = cart_service.get_cart(db, user.user_id)
    return to_response(user.user_id, view, currency, currency_service)


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Number of items for the cart badge - requires authentication."""
    return {"count": cart_service.get_item_count(db, user.user_id)}


@router.post("/items", response_model=AddToCartResponse)
async def add_to_cart(
    request: AddToCartRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart, merging with a line of the same size and color - requires authentication."""
    try:
        result = await cart_service.add_to_cart(
            db=db,
            user_id=user.user_id,
            product_id=request.product_id,
            quantity=request.quantity,
            size=request.size,
            color=request.color
        )
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {
        "message": "Item added to cart",
        **result
    }


@router.patch("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    request: UpdateCartItemRequest,
    item_id: str = Path(..., description="Cart item ID"),
    currency: str = Depends(get_display_currency),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Change a line quantity; zero or less removes it - requires authentication."""
    try:
        await cart_service.update_quantity(db, user.user_id, item_id, request.quantity)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    view = cart_service.get_cart(db, user.user_id)
    return to_response(user.user_id, view, currency, currency_service)


@router.delete("/items/{item_id}", status_code=204)
async def remove_cart_item(
    item_id: str = Path(..., description="Cart item ID"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove a line; removing an absent line succeeds - requires authentication."""
    await cart_service.remove_item(db, user.user_id, item_id)
    return Response(status_code=204)


@router.delete("", status_code=204)
async def clear_cart(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Empty the cart - requires authentication."""
    await cart_service.clear_cart(db, user.user_id)
    return Response(status_code=204)
