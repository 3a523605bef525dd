"""
Business-calendar gateway.

Answers "is this date a business day?" from a remote Chinese holiday API
(``HOLIDAY_API_URL``, one request per calendar date) with a per-date
in-memory cache.

Policy
------
- A weekend day is a business day only when the calendar marks it as a
  mandated workday (调休).  A weekday is a business day unless the calendar
  marks it as a holiday.
- Successful lookups are cached for ``HOLIDAY_CACHE_SECONDS``.
- Any lookup failure (network error, HTTP error, non-zero API code, bad
  JSON) **fails open**: the date is treated as "not a holiday, not a
  mandated workday", so plain weekday rules apply.  Failures are never
  raised to the caller and are not cached, so the next call retries.
- Every failure is logged at WARNING and counted in ``health()`` so the
  fallback is observable instead of silent.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any

import requests

from app.config import get_settings
from app.utils import date_utils

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HolidayInfo:
    """Calendar facts for one date.

    Attributes:
        date: The date looked up.
        is_holiday: Declared public holiday.
        is_workday: Weekend day declared a mandated workday.
        name: Holiday name as returned by the API, if any.
        from_fallback: ``True`` when the lookup failed and defaults were used.
    """

    date: date
    is_holiday: bool = False
    is_workday: bool = False
    name: str | None = None
    from_fallback: bool = False


class BusinessCalendar:
    """Cached client for the remote holiday calendar.

    Args:
        api_url: URL template containing a ``{date}`` placeholder.
        cache_seconds: Lifetime of a cached lookup.
        timeout: Per-request timeout in seconds.
        session: Optional ``requests.Session`` (tests inject a mock).
        clock: Monotonic clock used for cache expiry.
    """

    def __init__(
        self,
        api_url: str,
        cache_seconds: int = 24 * 60 * 60,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_url = api_url
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock

        self._cache: dict[date, tuple[float, HolidayInfo]] = {}
        self._lock = threading.Lock()

        self._lookups = 0
        self._failures = 0
        self._last_error: str | None = None
        self._last_failure_at: datetime | None = None
        self._last_success_at: datetime | None = None

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    def get_holiday_info(self, day: date) -> HolidayInfo:
        now = self._clock()
        with self._lock:
            cached = self._cache.get(day)
            if cached is not None and now < cached[0]:
                return cached[1]

        info = self._fetch(day)
        if not info.from_fallback:
            with self._lock:
                self._cache[day] = (now + self.cache_seconds, info)
        return info

    def _fetch(self, day: date) -> HolidayInfo:
        date_str = day.isoformat()
        url = self.api_url.format(date=date_str)
        self._lookups += 1
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            return self._fallback(day, f"{type(exc).__name__}: {exc}")

        if not isinstance(data, dict) or data.get("code") != 0:
            code = data.get("code") if isinstance(data, dict) else None
            return self._fallback(day, f"API returned code {code!r}")

        holiday: dict[str, Any] = data.get("holiday") or {}
        day_type: dict[str, Any] = data.get("type") or {}
        self._last_success_at = datetime.now(timezone.utc)
        return HolidayInfo(
            date=day,
            is_holiday=holiday.get("holiday") is True,
            is_workday=holiday.get("work") is True or day_type.get("type") == 3,
            name=holiday.get("name"),
        )

    def _fallback(self, day: date, reason: str) -> HolidayInfo:
        self._failures += 1
        self._last_error = reason
        self._last_failure_at = datetime.now(timezone.utc)
        logger.warning(
            "Holiday lookup failed for %s (%s); using plain weekday rules",
            day.isoformat(), reason,
        )
        return HolidayInfo(date=day, from_fallback=True)

    # -----------------------------------------------------------------------
    # Predicates
    # -----------------------------------------------------------------------

    def is_holiday(self, day: date) -> bool:
        return self.get_holiday_info(day).is_holiday

    def is_workday(self, day: date) -> bool:
        return self.get_holiday_info(day).is_workday

    def is_business_day(self, day: date) -> bool:
        info = self.get_holiday_info(day)
        if day.weekday() >= 5:
            return info.is_workday
        return not info.is_holiday

    def add_business_days(self, start_date: date, days: int) -> date:
        return date_utils.add_business_days(start_date, days, self.is_business_day)

    def count_business_days_between(self, start_date: date, end_date: date) -> int:
        return date_utils.count_business_days_between(
            start_date, end_date, self.is_business_day
        )

    # -----------------------------------------------------------------------
    # Maintenance
    # -----------------------------------------------------------------------

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.info("Holiday cache cleared")

    def health(self) -> dict[str, Any]:
        """Snapshot of gateway activity for the health endpoint."""
        with self._lock:
            cached = len(self._cache)
        return {
            "api_url": self.api_url,
            "cached_dates": cached,
            "lookups": self._lookups,
            "failures": self._failures,
            "degraded": self._last_failure_at is not None and (
                self._last_success_at is None
                or self._last_failure_at > self._last_success_at
            ),
            "last_error": self._last_error,
            "last_failure_at": self._last_failure_at,
            "last_success_at": self._last_success_at,
        }


@lru_cache
def get_calendar() -> BusinessCalendar:
    """Process-wide calendar instance; also the FastAPI dependency."""
    settings = get_settings()
    return BusinessCalendar(
        api_url=settings.HOLIDAY_API_URL,
        cache_seconds=settings.HOLIDAY_CACHE_SECONDS,
        timeout=settings.HOLIDAY_API_TIMEOUT,
    )
