"""Client for the metered hotel pricing provider."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional

import httpx

from hotel_intel.hotels.models import PageResult
from hotel_intel.hotels.normalizer import build_page_result

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_URL = "https://api.makcorps.com/city"
DEFAULT_ACCOUNT_URL = "https://api.makcorps.com/account"

_QUOTA_MARKERS = ("quota", "limit reached", "limit exceeded", "no credits", "out of credits", "exhausted")
_CREDENTIAL_MARKERS = ("api key", "api_key", "apikey", "credential", "unauthor", "invalid key", "token")


class ProviderError(RuntimeError):
    """Base class for classified pricing-provider failures."""

    reason = "provider-error"

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class QuotaExhausted(ProviderError):
    """Raised when the provider refuses further metered calls. Fatal to a run."""

    reason = "quota-reached"


class InvalidCredential(ProviderError):
    """Raised when the provider rejects the configured credential. Fatal to a run."""

    reason = "invalid-credential"


class TransientFetchError(ProviderError):
    """Raised for any other failure local to one (date, page) request."""

    reason = "transient"


@dataclass(frozen=True)
class AccountStatus:
    """Plan usage reported by the account-status endpoint."""

    plan_limit: Optional[int]
    used: Optional[int]
    remaining: Optional[int]
    plan_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AccountStatus":
        def _pick(*keys: str) -> Optional[int]:
            for key in keys:
                value = payload.get(key)
                if value is None:
                    continue
                try:
                    return int(value)
                except (TypeError, ValueError):
                    continue
            return None

        limit = _pick("planLimit", "plan_limit", "limit", "totalCalls", "total_calls", "searches_per_month")
        used = _pick("used", "apiCallsUsed", "calls_used", "callsUsed", "this_month_usage")
        remaining = _pick("remaining", "remainingCalls", "calls_remaining", "callsRemaining", "total_searches_left")
        if remaining is None and limit is not None and used is not None:
            remaining = max(limit - used, 0)
        if used is None and limit is not None and remaining is not None:
            used = max(limit - remaining, 0)
        plan = payload.get("plan") or payload.get("planName") or payload.get("plan_name")
        return cls(plan_limit=limit, used=used, remaining=remaining, plan_name=str(plan) if plan else None)

    def to_dict(self) -> dict[str, object]:
        return {
            "plan_limit": self.plan_limit,
            "used": self.used,
            "remaining": self.remaining,
            "plan_name": self.plan_name,
        }


def checkout_for(check_in: str) -> str:
    """Single-night stays: checkout is the day after check-in."""
    return (date.fromisoformat(check_in) + timedelta(days=1)).isoformat()


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:512]
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])[:512]
    return response.text[:512]


def classify_error(status: int, message: str) -> ProviderError:
    """Map an HTTP failure onto the provider error taxonomy."""
    lowered = message.lower()
    if status == 403 or (status == 429 and any(marker in lowered for marker in _QUOTA_MARKERS)):
        return QuotaExhausted(f"Provider quota exhausted ({status}): {message}", status=status)
    if status == 401 or (status == 404 and any(marker in lowered for marker in _CREDENTIAL_MARKERS)):
        return InvalidCredential(f"Provider rejected credential ({status}): {message}", status=status)
    return TransientFetchError(f"Provider request failed ({status}): {message}", status=status)


def _classify_error_body(payload: Dict[str, Any]) -> ProviderError:
    message = str(payload.get("error") or payload.get("message") or "unknown error")
    lowered = message.lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExhausted(f"Provider quota exhausted: {message}")
    if any(marker in lowered for marker in _CREDENTIAL_MARKERS):
        return InvalidCredential(f"Provider rejected credential: {message}")
    return TransientFetchError(f"Provider returned an error: {message}")


class PriceProviderClient:
    """Thin async wrapper around the pricing and account-status endpoints."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_PROVIDER_URL,
        account_url: str = DEFAULT_ACCOUNT_URL,
        params: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._account_url = account_url
        self._params = dict(params or {})
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": "hotel-intel/0.1.0"},
        )

    @classmethod
    def from_settings(cls, settings, *, client: Optional[httpx.AsyncClient] = None) -> "PriceProviderClient":
        return cls(
            base_url=settings.provider_url,
            account_url=settings.account_url,
            params=settings.provider_params(),
            timeout=settings.http_timeout_s,
            client=client,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PriceProviderClient":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.close()

    def build_params(self, check_in: str, page: int) -> Dict[str, str]:
        params = dict(self._params)
        params.update(
            {
                "pagination": str(page),
                "checkin": check_in,
                "checkout": checkout_for(check_in),
            }
        )
        return params

    async def _get_json(self, url: str, params: Dict[str, str]) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Transport failure: {exc}") from exc
        if response.status_code >= 400:
            raise classify_error(response.status_code, _error_text(response))
        try:
            return response.json()
        except ValueError as exc:
            raise TransientFetchError(f"Provider returned invalid JSON: {response.text[:128]}") from exc

    async def fetch_page(self, check_in: str, page: int = 0) -> PageResult:
        """Fetch and normalise one page of quotes for ``check_in``."""
        if page < 0:
            raise ValueError("page must be zero or positive")
        date.fromisoformat(check_in)
        logger.debug("Fetching %s page %s", check_in, page)
        payload = await self._get_json(self._base_url, self.build_params(check_in, page))
        if isinstance(payload, dict):
            if payload.get("error"):
                raise _classify_error_body(payload)
            # Some proxies wrap the list; accept the common envelopes.
            payload = payload.get("hotels") or payload.get("properties") or payload.get("data") or []
        result = build_page_result(payload, date=check_in, page=page)
        logger.info(
            "Fetched %s page %s: %s quotes (%s dropped)",
            check_in,
            page,
            len(result.quotes),
            result.dropped_records,
        )
        return result

    async def fetch_account_status(self) -> AccountStatus:
        params = {"api_key": self._params["api_key"]} if self._params.get("api_key") else {}
        payload = await self._get_json(self._account_url, params)
        if not isinstance(payload, dict):
            raise TransientFetchError("Account status response was not an object")
        if payload.get("error"):
            raise _classify_error_body(payload)
        status = AccountStatus.from_payload(payload)
        logger.info(
            "Account status: plan_limit=%s used=%s remaining=%s",
            status.plan_limit,
            status.used,
            status.remaining,
        )
        return status
