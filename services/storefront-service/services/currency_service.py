"""Currency conversion, display formatting and exchange-rate refresh."""
import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Dict, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from config import BASE_CURRENCY, EXCHANGE_RATE_REFRESH_SECONDS, EXCHANGE_RATE_RETRY_SECONDS
from exceptions import ExternalServiceError, InvalidCurrencyError
from monitoring import rate_refresh_failures_counter
from services.external_service import ExchangeRateClient
from services.sequencing import RequestSequencer

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


class CurrencyInfo(BaseModel):
    """Display attributes of a currency."""
    model_config = ConfigDict(frozen=True)

    code: str
    symbol: str
    decimal_places: int = 2


CURRENCIES: Dict[str, CurrencyInfo] = {
    info.code: info
    for info in (
        CurrencyInfo(code="USD", symbol="$"),
        CurrencyInfo(code="EUR", symbol="€"),
        CurrencyInfo(code="GBP", symbol="£"),
        CurrencyInfo(code="JPY", symbol="¥", decimal_places=0),
        CurrencyInfo(code="CAD", symbol="C$"),
        CurrencyInfo(code="AUD", symbol="A$"),
    )
}

FALLBACK_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.85"),
    "GBP": Decimal("0.75"),
    "JPY": Decimal("110.42"),
    "CAD": Decimal("1.25"),
    "AUD": Decimal("1.35"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


class ExchangeRateTable(BaseModel):
    """Immutable rate table against the canonical currency."""
    model_config = ConfigDict(frozen=True)

    rates: Dict[str, Decimal]
    source: str
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def fallback(cls) -> "ExchangeRateTable":
        return cls(rates=dict(FALLBACK_RATES), source="fallback")

    @classmethod
    def from_remote(cls, raw: Mapping[str, object]) -> "ExchangeRateTable":
        """
        Build a table from a rate source payload.

        Only supported currencies are kept and the canonical currency is pinned
        to 1. A payload missing a supported currency, or carrying a
        non-positive or non-numeric rate for one, is rejected as a whole.

        Raises:
            ExternalServiceError: If the payload cannot form a complete table
        """
        rates = {BASE_CURRENCY: Decimal("1")}
        for code in CURRENCIES:
            if code == BASE_CURRENCY:
                continue
            if code not in raw:
                raise ExternalServiceError(f"Exchange rate payload is missing {code}")
            try:
                rate = _to_decimal(raw[code])
            except (InvalidOperation, TypeError, ValueError) as e:
                raise ExternalServiceError(f"Invalid rate for {code}: {raw[code]!r}") from e
            if not rate.is_finite() or rate <= 0:
                raise ExternalServiceError(f"Invalid rate for {code}: {raw[code]!r}")
            rates[code] = rate
        return cls(rates=rates, source="remote")

    def rate_for(self, currency: str) -> Decimal:
        try:
            return self.rates[currency]
        except KeyError:
            raise InvalidCurrencyError(currency) from None


class RefreshResult(BaseModel):
    """Outcome of one refresh attempt.

    ``applied`` is True only when the fetched table replaced the current one.
    """
    model_config = ConfigDict(frozen=True)

    applied: bool
    warning: Optional[str] = None


def convert(amount: Amount, target_currency: str, rate_table: ExchangeRateTable) -> Decimal:
    """
    Convert a canonical-currency amount into the target currency.

    Raises:
        InvalidCurrencyError: If the target is not in the table
    """
    return _to_decimal(amount) * rate_table.rate_for(target_currency)


def format_amount(amount: Amount, currency: str) -> str:
    """
    Render an amount already expressed in ``currency``.

    The number of decimals comes from the currency's ``decimal_places``;
    rounding is half-up.
    """
    info = CURRENCIES.get(currency)
    if info is None:
        raise InvalidCurrencyError(currency)
    quantum = Decimal(1).scaleb(-info.decimal_places)
    rounded = _to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{info.symbol}{rounded:.{info.decimal_places}f}"


class CurrencyService:
    """Holds the live rate table and keeps it fresh."""

    def __init__(
        self,
        rate_client: Optional[ExchangeRateClient] = None,
        rate_table: Optional[ExchangeRateTable] = None
    ):
        """
        Initialize currency service.

        Args:
            rate_client: Source for fresh rates; None keeps the initial table forever
            rate_table: Initial table, defaults to the fallback table
        """
        self.rate_client = rate_client
        self._table = rate_table or ExchangeRateTable.fallback()
        self._sequencer = RequestSequencer("exchange_rates")
        self._task: Optional[asyncio.Task] = None
        self.last_warning: Optional[str] = None

    @property
    def rate_table(self) -> ExchangeRateTable:
        return self._table

    def supports(self, currency: str) -> bool:
        return currency in self._table.rates and currency in CURRENCIES

    def convert(self, amount: Amount, currency: str) -> Decimal:
        return convert(amount, currency, self._table)

    def format_price(self, amount: Amount, currency: str) -> str:
        """Convert a canonical price with the current table and format it."""
        return format_amount(self.convert(amount, currency), currency)

    async def refresh(self) -> RefreshResult:
        """
        Fetch a fresh table and swap it in wholesale.

        Returns:
            Whether the table was replaced, plus a warning when the fetch
            failed. The previous table stays in place on failure, when a newer
            refresh superseded this one, and when there is no rate source.
        """
        if self.rate_client is None:
            return RefreshResult(applied=False)

        ticket = self._sequencer.issue()
        try:
            raw = await self.rate_client.fetch_rates()
            table = ExchangeRateTable.from_remote(raw)
        except ExternalServiceError as e:
            warning = f"Exchange rate refresh failed, keeping {self._table.source} rates: {e}"
            rate_refresh_failures_counter.add(1, {"source": self._table.source})
            logger.warning(warning, extra={
                "rate_source": self._table.source,
                "rates_updated_at": self._table.updated_at.isoformat()
            })
            if self._sequencer.is_current(ticket):
                self.last_warning = warning
            return RefreshResult(applied=False, warning=warning)

        if not self._sequencer.is_current(ticket):
            return RefreshResult(applied=False)

        self._table = table
        self.last_warning = None
        logger.info("Exchange rates refreshed", extra={
            "currencies": sorted(table.rates)
        })
        return RefreshResult(applied=True)

    async def run_refresh_loop(
        self,
        interval: float = EXCHANGE_RATE_REFRESH_SECONDS,
        retry_interval: float = EXCHANGE_RATE_RETRY_SECONDS
    ) -> None:
        """Refresh forever; failed attempts are retried after ``retry_interval``."""
        while True:
            try:
                failed = (await self.refresh()).warning is not None
            except Exception:
                logger.exception("Unexpected error refreshing exchange rates")
                failed = True
            await asyncio.sleep(retry_interval if failed else interval)

    def start(self) -> asyncio.Task:
        """Start the background refresh loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_refresh_loop())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
