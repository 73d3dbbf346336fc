"""External service communication layer."""
import httpx
import logging
import time
from typing import Dict

from config import EXCHANGE_RATE_URL
from exceptions import ExternalServiceError
from monitoring import external_rates_duration_histogram

logger = logging.getLogger(__name__)


class ExchangeRateClient:
    """Client for the exchange-rate source."""

    def __init__(self, http_client: httpx.AsyncClient, url: str = EXCHANGE_RATE_URL):
        """
        Initialize exchange-rate client.

        Args:
            http_client: Async HTTP client
            url: Endpoint returning rates against the canonical currency
        """
        self.http_client = http_client
        self.url = url

    async def fetch_rates(self) -> Dict[str, float]:
        """
        Fetch the latest rate mapping.

        Returns:
            Mapping of currency code to rate against the canonical currency

        Raises:
            ExternalServiceError: If the source is unreachable, times out or
                returns an unusable payload
        """
        # HTTPXClientInstrumentor already creates spans for HTTP calls
        start_time = time.time()
        status = "success"
        status_code = None
        try:
            response = await self.http_client.get(self.url)
            status_code = response.status_code
            if response.status_code != 200:
                status = "error"
                logger.warning("Exchange rate source returned non-200 status", extra={
                    "status_code": response.status_code,
                    "url": self.url
                })
                raise ExternalServiceError(f"Exchange rate source returned {response.status_code}")

            try:
                payload = response.json()
            except ValueError as e:
                status = "error"
                raise ExternalServiceError("Exchange rate source returned invalid JSON") from e

            rates = payload.get("rates") if isinstance(payload, dict) else None
            if not isinstance(rates, dict):
                status = "error"
                raise ExternalServiceError("Exchange rate payload has no rates mapping")
            return {str(code).upper(): rate for code, rate in rates.items()}

        except httpx.HTTPError as e:
            status = "error"
            status_code = 0  # Connection failure or timeout
            logger.error("Failed to fetch exchange rates", extra={
                "url": self.url,
                "error": str(e)
            })
            raise ExternalServiceError(f"Exchange rate source unavailable: {e}") from e
        finally:
            duration = time.time() - start_time
            external_rates_duration_histogram.record(
                duration,
                {
                    "status": status,
                    "status_code": str(status_code) if status_code else "0"
                }
            )
