"""Error taxonomy shared by the storefront services and routers."""


class StorefrontError(Exception):
    """Base class for errors scoped to a single user action."""

    status_code = 500


class ValidationError(StorefrontError, ValueError):
    """Missing or invalid input. The operation is aborted with no partial write."""

    status_code = 400


class NotFoundError(StorefrontError, LookupError):
    """A referenced product or cart row does not exist."""

    status_code = 404


class ExternalServiceError(StorefrontError):
    """Storage, auth or exchange-rate source failure."""

    status_code = 502


class InvalidCurrencyError(StorefrontError, KeyError):
    """Currency code missing from the rate table.

    This is a configuration error inside the service; it is never defaulted away.
    """

    status_code = 400

    def __init__(self, currency: str):
        super().__init__(currency)
        self.currency = currency

    def __str__(self) -> str:
        return f"Unsupported currency: {self.currency}"
