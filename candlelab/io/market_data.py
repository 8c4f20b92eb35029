"""Client for the market-data backend and the history loading helper.

The backend stores tick series and exposes them through three endpoints:
``get-market-data`` returns a date-bounded series, ``available-data-ranges``
lists what has been imported and ``tick-data`` holds the raw rows. The core
only consumes these; it neither caches nor indexes them.
"""
from __future__ import annotations

import time
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import httpx

from ..config import DataSourceSettings, NormalizerSettings
from ..market.candles import NormalizedCandle, coerce_records
from ..market.validation import normalize_candle_sequence
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class MarketDataError(RuntimeError):
    """Raised when the backend cannot be reached or keeps failing."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MarketDataSource(Protocol):
    def fetch_series(
        self,
        symbol: str,
        start_date: Optional[str],
        end_date: Optional[str],
        timeframe: str,
        limit: int,
    ) -> List[Dict[str, Any]]:
        ...

    def list_available_ranges(self) -> List[Dict[str, Any]]:
        ...

    def clear(self) -> None:
        ...


def check_date_range(start_date: Optional[str], end_date: Optional[str]) -> None:
    if start_date and end_date and date.fromisoformat(start_date) > date.fromisoformat(end_date):
        raise ValueError("start_date must not be after end_date")


class HttpMarketDataSource:
    """Synchronous httpx client for the market-data backend."""

    def __init__(
        self,
        settings: Optional[DataSourceSettings] = None,
        *,
        client_factory: Optional[Callable[[], httpx.Client]] = None,
        retry_delay: float = 0.5,
    ) -> None:
        self.settings = settings or DataSourceSettings()
        self._client_factory = client_factory or self._default_client
        self._retry_delay = max(0.0, float(retry_delay))

    def _default_client(self) -> httpx.Client:
        headers = {}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
            headers["apikey"] = self.settings.api_key
        return httpx.Client(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout_seconds,
            headers=headers,
        )

    def _request(self, method: str, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        delay = self._retry_delay
        attempts = self.settings.max_retries
        with self._client_factory() as client:
            for attempt in range(attempts):
                try:
                    response = client.request(method, path, params=params)
                    response.raise_for_status()
                    return response.json() if response.content else None
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    if status in _RETRYABLE_STATUS and attempt < attempts - 1:
                        LOGGER.warning("%s %s returned %s, retrying", method, path, status)
                        time.sleep(delay)
                        delay *= 2
                        continue
                    raise MarketDataError(f"{method} {path} failed with status {status}", status) from exc
                except httpx.RequestError as exc:
                    if attempt < attempts - 1:
                        LOGGER.warning("%s %s transport error: %s, retrying", method, path, exc)
                        time.sleep(delay)
                        delay *= 2
                        continue
                    raise MarketDataError(f"{method} {path} failed: {exc}") from exc
        raise MarketDataError(f"{method} {path} failed")

    def fetch_series(
        self,
        symbol: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        timeframe: str = "5min",
        limit: int = 1_000,
    ) -> List[Dict[str, Any]]:
        check_date_range(start_date, end_date)
        params: Dict[str, Any] = {"symbol": symbol, "timeframe": timeframe, "limit": int(limit)}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date

        payload = self._request("GET", "/get-market-data", params=params)
        if not isinstance(payload, Mapping) or not payload.get("success"):
            error = payload.get("error") if isinstance(payload, Mapping) else None
            LOGGER.warning("No data for %s %s..%s: %s", symbol, start_date, end_date, error)
            return []
        data = payload.get("data") or []
        LOGGER.info("Fetched %s records for %s %s", len(data), symbol, timeframe)
        return list(data)

    def list_available_ranges(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/available-data-ranges")
        if isinstance(payload, Mapping):
            payload = payload.get("data")
        ranges = list(payload or [])
        LOGGER.info("Available ranges refreshed: %s found", len(ranges))
        return ranges

    def clear(self) -> None:
        self._request("DELETE", "/tick-data")
        self._request("DELETE", "/available-data-ranges")
        LOGGER.info("Cleared all stored market data")


def load_history(
    source: MarketDataSource,
    start_date: str,
    end_date: str,
    timeframe: str = "5min",
    *,
    symbol: str = "XAUUSD",
    limit: int = 10_000,
    normalizer: Optional[NormalizerSettings] = None,
) -> List[NormalizedCandle]:
    """Fetch a date range and turn it into a clean, gap-filled candle list.

    An empty result is a normal outcome ("nothing imported for this range")
    and returns an empty list.
    """
    check_date_range(start_date, end_date)
    normalizer = normalizer or NormalizerSettings()
    records = source.fetch_series(symbol, start_date, end_date, timeframe, limit)
    candles = coerce_records(records)
    if not candles:
        LOGGER.warning("No usable candles for %s between %s and %s", symbol, start_date, end_date)
        return []
    dropped = len(records) - len(candles)
    if dropped:
        LOGGER.warning("Dropped %s malformed records for %s", dropped, symbol)
    return normalize_candle_sequence(
        candles,
        max_gap_seconds=normalizer.max_gap_seconds,
        fill_spacing_seconds=normalizer.fill_spacing_seconds,
    )
