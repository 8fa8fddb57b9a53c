"""Service clients for the hotel pricing provider."""

from .provider_client import (
    AccountStatus,
    InvalidCredential,
    PriceProviderClient,
    ProviderError,
    QuotaExhausted,
    TransientFetchError,
)

__all__ = [
    "AccountStatus",
    "InvalidCredential",
    "PriceProviderClient",
    "ProviderError",
    "QuotaExhausted",
    "TransientFetchError",
]
