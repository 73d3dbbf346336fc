"""Currency API router."""
from decimal import Decimal
from fastapi import APIRouter, Depends, Query

from auth import CurrentUser, require_admin
from config import BASE_CURRENCY
from dependencies import get_currency_service, get_display_currency
from schemas import ConversionResponse, ExchangeRatesResponse, RefreshResponse
from services.currency_service import CurrencyService

router = APIRouter(prefix="/currency", tags=["currency"])


@router.get("/rates", response_model=ExchangeRatesResponse)
async def get_rates(currency_service: CurrencyService = Depends(get_currency_service)):
    """Current exchange rate table. ``warning`` is set while the last refresh failed."""
    table = currency_service.rate_table
    return {
        "base": BASE_CURRENCY,
        "rates": {code: float(rate) for code, rate in table.rates.items()},
        "source": table.source,
        "updated_at": table.updated_at,
        "warning": currency_service.last_warning
    }


@router.get("/convert", response_model=ConversionResponse)
async def convert_amount(
    amount: Decimal = Query(..., ge=0, description="Amount in the canonical currency"),
    currency: str = Depends(get_display_currency),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Convert and format a canonical-currency amount."""
    return {
        "amount": float(amount),
        "currency": currency,
        "converted": float(currency_service.convert(amount, currency)),
        "formatted": currency_service.format_price(amount, currency)
    }


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_rates(
    user: CurrentUser = Depends(require_admin),
    currency_service: CurrencyService = Depends(get_currency_service)
):
    """Force an exchange rate refresh - requires admin role."""
    result = await currency_service.refresh()
    return {
        "refreshed": result.applied,
        "source": currency_service.rate_table.source,
        "warning": result.warning
    }
