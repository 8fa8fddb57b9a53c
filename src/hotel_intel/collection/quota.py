"""Credit budget tracking for the metered pricing provider."""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from hotel_intel.services.provider_client import AccountStatus

if TYPE_CHECKING:  # pragma: no cover
    from hotel_intel.services.provider_client import PriceProviderClient

logger = logging.getLogger(__name__)


class QuotaTracker:
    """Holds the last known credit balance and the calls made this session.

    One tracker belongs to one collection session; nothing here is module
    level, so independent sessions never share counters.
    """

    def __init__(self, remaining_credits: Optional[int] = None) -> None:
        self._remaining_at_check = remaining_credits
        self._calls_since_check = 0
        self._calls_this_session = 0
        self._last_status: Optional[AccountStatus] = None
        self._lock = threading.Lock()

    @property
    def calls_this_session(self) -> int:
        return self._calls_this_session

    @property
    def last_status(self) -> Optional[AccountStatus]:
        return self._last_status

    @staticmethod
    def estimate_calls(num_dates: int, pages_per_date: int = 1) -> int:
        if num_dates < 0 or pages_per_date < 0:
            raise ValueError("num_dates and pages_per_date must be non-negative")
        return num_dates * pages_per_date

    def start_session(self) -> None:
        with self._lock:
            self._calls_this_session = 0

    def record_usage(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError("usage must be non-negative")
        with self._lock:
            self._calls_this_session += n
            self._calls_since_check += n

    def remaining(self) -> Optional[int]:
        """Estimated credits left, or ``None`` before the first account check."""
        with self._lock:
            if self._remaining_at_check is None:
                return None
            return max(self._remaining_at_check - self._calls_since_check, 0)

    def set_remaining(self, remaining: Optional[int]) -> None:
        with self._lock:
            self._remaining_at_check = remaining
            self._calls_since_check = 0

    def mark_exhausted(self) -> None:
        self.set_remaining(0)

    def can_afford(self, n: int) -> bool:
        remaining = self.remaining()
        return remaining is None or remaining >= n

    def affordable_dates(self, num_dates: int, pages_per_date: int = 1) -> int:
        """How many of ``num_dates`` fit into the known budget."""
        remaining = self.remaining()
        if remaining is None or pages_per_date <= 0:
            return num_dates
        return min(num_dates, remaining // pages_per_date)

    async def check_account_status(self, client: "PriceProviderClient") -> AccountStatus:
        """Refresh the balance from the account endpoint.

        The status call itself is informational and is not recorded as usage.
        """
        status = await client.fetch_account_status()
        self._last_status = status
        if status.remaining is not None:
            self.set_remaining(status.remaining)
        logger.info("Quota refreshed: %s credits remaining", status.remaining)
        return status
