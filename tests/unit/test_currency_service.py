"""Unit tests for currency conversion, formatting and rate refresh."""

import asyncio
import logging
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from exceptions import ExternalServiceError, InvalidCurrencyError
from services.currency_service import (
    CURRENCIES,
    FALLBACK_RATES,
    CurrencyInfo,
    CurrencyService,
    ExchangeRateTable,
    convert,
    format_amount,
)
from services.external_service import ExchangeRateClient

REMOTE_RATES = {"USD": 1, "EUR": 0.9, "GBP": 0.8, "JPY": 150.0, "CAD": 1.3, "AUD": 1.5, "CHF": 0.88}


def rate_client(handler) -> ExchangeRateClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExchangeRateClient(http_client, url="https://rates.test/latest/USD")


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"base": "USD", "rates": REMOTE_RATES})


def failing_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


class TestConvert:
    def test_identity_on_canonical_currency(self):
        table = ExchangeRateTable.fallback()
        assert convert(Decimal("123.45"), "USD", table) == Decimal("123.45")

    def test_multiplies_by_rate(self):
        table = ExchangeRateTable.fallback()
        assert convert(Decimal("100"), "EUR", table) == Decimal("85.00")

    def test_accepts_floats_without_binary_noise(self):
        table = ExchangeRateTable.fallback()
        assert convert(0.1, "USD", table) == Decimal("0.1")

    def test_unknown_currency_fails_loudly(self):
        with pytest.raises(InvalidCurrencyError) as exc:
            convert(Decimal("1"), "XYZ", ExchangeRateTable.fallback())
        assert "XYZ" in str(exc.value)


class TestFormatAmount:
    def test_two_decimals(self):
        assert format_amount(Decimal("85"), "EUR") == "€85.00"
        assert format_amount(Decimal("59.9925"), "GBP") == "£59.99"

    def test_zero_decimal_currency_rounds_half_up(self):
        assert format_amount(Decimal("7728.5"), "JPY") == "¥7729"
        assert format_amount(Decimal("7728.49"), "JPY") == "¥7728"

    def test_multi_letter_symbols(self):
        assert format_amount(Decimal("1.005"), "CAD") == "C$1.01"
        assert format_amount(Decimal("2"), "AUD") == "A$2.00"

    def test_rule_is_driven_by_decimal_places(self, monkeypatch):
        monkeypatch.setitem(CURRENCIES, "KRW", CurrencyInfo(code="KRW", symbol="₩", decimal_places=0))
        monkeypatch.setitem(CURRENCIES, "BHD", CurrencyInfo(code="BHD", symbol="BD", decimal_places=3))
        assert format_amount(Decimal("1234.6"), "KRW") == "₩1235"
        assert format_amount(Decimal("1.2345"), "BHD") == "BD1.235"

    def test_unknown_currency(self):
        with pytest.raises(InvalidCurrencyError):
            format_amount(Decimal("1"), "XYZ")


class TestExchangeRateTable:
    def test_fallback_table(self):
        table = ExchangeRateTable.fallback()
        assert table.source == "fallback"
        assert table.rates == FALLBACK_RATES
        assert table.rates["USD"] == 1

    def test_from_remote_keeps_supported_codes_only(self):
        table = ExchangeRateTable.from_remote(REMOTE_RATES)
        assert table.source == "remote"
        assert set(table.rates) == set(CURRENCIES)
        assert table.rates["JPY"] == Decimal("150.0")

    def test_from_remote_pins_canonical_currency(self):
        table = ExchangeRateTable.from_remote({**REMOTE_RATES, "USD": 2})
        assert table.rates["USD"] == 1

    def test_incomplete_payload_rejected(self):
        rates = dict(REMOTE_RATES)
        del rates["GBP"]
        with pytest.raises(ExternalServiceError):
            ExchangeRateTable.from_remote(rates)

    @pytest.mark.parametrize("bad", [0, -1.2, "abc", None, float("nan")])
    def test_invalid_rate_rejected(self, bad):
        with pytest.raises(ExternalServiceError):
            ExchangeRateTable.from_remote({**REMOTE_RATES, "EUR": bad})


class TestCurrencyService:
    def test_format_price_converts_then_formats(self):
        service = CurrencyService()
        assert service.format_price(Decimal("100"), "EUR") == "€85.00"
        assert service.format_price(Decimal("100"), "JPY") == "¥11042"
        assert service.format_price(Decimal("69.99"), "USD") == "$69.99"

    def test_supports(self):
        service = CurrencyService()
        assert service.supports("EUR")
        assert not service.supports("XYZ")

    @pytest.mark.asyncio
    async def test_refresh_success_replaces_table(self):
        service = CurrencyService(rate_client(ok_handler))

        result = await service.refresh()

        assert result.applied
        assert result.warning is None
        assert service.rate_table.source == "remote"
        assert service.format_price(Decimal("100"), "EUR") == "€90.00"
        assert service.last_warning is None

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_previous_table(self, caplog):
        service = CurrencyService(rate_client(failing_handler))
        before = service.rate_table

        with caplog.at_level(logging.WARNING, logger="services.currency_service"):
            result = await service.refresh()

        assert not result.applied
        assert "keeping fallback rates" in result.warning
        assert service.rate_table is before
        assert service.format_price(Decimal("100"), "EUR") == "€85.00"
        assert service.last_warning == result.warning
        refresh_warnings = [r for r in caplog.records if r.name == "services.currency_service"]
        assert len(refresh_warnings) == 1

    @pytest.mark.asyncio
    async def test_one_warning_per_failed_attempt(self, caplog):
        service = CurrencyService(rate_client(failing_handler))

        with caplog.at_level(logging.WARNING, logger="services.currency_service"):
            results = [await service.refresh() for _ in range(3)]

        assert all(r.warning for r in results)
        refresh_warnings = [r for r in caplog.records if r.name == "services.currency_service"]
        assert len(refresh_warnings) == 3

    @pytest.mark.asyncio
    async def test_failure_after_success_keeps_remote_table(self):
        responses = iter([httpx.Response(200, json={"rates": REMOTE_RATES}), httpx.Response(503)])
        service = CurrencyService(rate_client(lambda request: next(responses)))

        assert (await service.refresh()).applied
        result = await service.refresh()

        assert not result.applied
        assert "keeping remote rates" in result.warning
        assert service.rate_table.rates["EUR"] == Decimal("0.9")

    @pytest.mark.asyncio
    async def test_malformed_payload_is_a_failure(self):
        service = CurrencyService(rate_client(lambda request: httpx.Response(200, json={"oops": True})))
        result = await service.refresh()
        assert not result.applied
        assert result.warning is not None
        assert service.rate_table.source == "fallback"

    @pytest.mark.asyncio
    async def test_superseded_refresh_is_discarded(self):
        first_started = asyncio.Event()
        release_first = asyncio.Event()
        stale_rates = {**REMOTE_RATES, "EUR": 0.5}
        fresh_rates = {**REMOTE_RATES, "EUR": 0.95}

        async def fetch_rates():
            if not first_started.is_set():
                first_started.set()
                await release_first.wait()
                return stale_rates
            return fresh_rates

        client = AsyncMock()
        client.fetch_rates = AsyncMock(side_effect=fetch_rates)
        service = CurrencyService(client)

        slow = asyncio.create_task(service.refresh())
        await first_started.wait()
        assert (await service.refresh()).applied
        release_first.set()
        stale = await slow

        assert not stale.applied
        assert stale.warning is None
        assert service.rate_table.rates["EUR"] == Decimal("0.95")

    @pytest.mark.asyncio
    async def test_refresh_without_client_is_not_applied(self):
        service = CurrencyService()
        result = await service.refresh()
        assert not result.applied
        assert result.warning is None
        assert service.rate_table.source == "fallback"

    @pytest.mark.asyncio
    async def test_background_loop_start_and_stop(self):
        client = AsyncMock()
        client.fetch_rates = AsyncMock(return_value=REMOTE_RATES)
        service = CurrencyService(client)

        task = service.start()
        for _ in range(10):
            if service.rate_table.source == "remote":
                break
            await asyncio.sleep(0)
        await service.stop()

        assert task.cancelled()
        assert service.rate_table.source == "remote"
