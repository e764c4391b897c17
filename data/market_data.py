"""
Market Data Gateway for the Massive API (formerly Polygon.io).

Single point of contact with the market data provider: request shaping,
response unwrapping, retries, rate limiting and per-endpoint failure policy.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests

from errors import NoDataError, UpstreamError
from .rate_limiter import TokenBucket

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://api.massive.com"


class FailurePolicy(Enum):
    """What a gateway method does when its request fails."""
    PROPAGATE = "propagate"
    SUPPRESS_TO_EMPTY = "suppress_to_empty"
    SUPPRESS_TO_ABSENT = "suppress_to_absent"


DEFAULT_POLICIES: Dict[str, FailurePolicy] = {
    "aggregates": FailurePolicy.PROPAGATE,
    "ticker_details": FailurePolicy.SUPPRESS_TO_ABSENT,
    "news": FailurePolicy.SUPPRESS_TO_EMPTY,
    "rsi": FailurePolicy.SUPPRESS_TO_EMPTY,
    "sma": FailurePolicy.SUPPRESS_TO_EMPTY,
    "previous_close": FailurePolicy.SUPPRESS_TO_ABSENT,
}


# =============================================================================
# RESPONSE RECORDS
# =============================================================================

@dataclass
class StockAggregate:
    """One daily bar."""
    timestamp: int  # ms since epoch
    open: float
    high: float
    low: float
    close: float
    volume: float
    vwap: Optional[float] = None
    transactions: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "StockAggregate":
        return cls(
            timestamp=data.get("t", 0),
            open=data.get("o", 0.0),
            high=data.get("h", 0.0),
            low=data.get("l", 0.0),
            close=data.get("c", 0.0),
            volume=data.get("v", 0.0),
            vwap=data.get("vw"),
            transactions=data.get("n")
        )


@dataclass
class TickerDetails:
    """Company profile from the ticker reference endpoint."""
    ticker: str
    name: str
    market: Optional[str] = None
    locale: Optional[str] = None
    primary_exchange: Optional[str] = None
    type: Optional[str] = None
    active: bool = True
    currency_name: Optional[str] = None
    description: Optional[str] = None
    market_cap: Optional[float] = None
    total_employees: Optional[int] = None
    list_date: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TickerDetails":
        return cls(
            ticker=data.get("ticker", ""),
            name=data.get("name", ""),
            market=data.get("market"),
            locale=data.get("locale"),
            primary_exchange=data.get("primary_exchange"),
            type=data.get("type"),
            active=data.get("active", True),
            currency_name=data.get("currency_name"),
            description=data.get("description"),
            market_cap=data.get("market_cap"),
            total_employees=data.get("total_employees"),
            list_date=data.get("list_date")
        )


@dataclass
class NewsArticle:
    """A news article with optional per-ticker sentiment insights."""
    id: str
    title: str
    publisher: str
    published_utc: str
    article_url: str
    description: Optional[str] = None
    author: Optional[str] = None
    tickers: List[str] = field(default_factory=list)
    insights: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NewsArticle":
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            publisher=(data.get("publisher") or {}).get("name", "Unknown"),
            published_utc=data.get("published_utc", ""),
            article_url=data.get("article_url", ""),
            description=data.get("description"),
            author=data.get("author"),
            tickers=data.get("tickers") or [],
            insights=data.get("insights") or []
        )

    @property
    def sentiment(self) -> str:
        """Sentiment of the first insight, or neutral."""
        if self.insights and self.insights[0].get("sentiment"):
            return self.insights[0]["sentiment"]
        return "neutral"


@dataclass
class IndicatorValue:
    """A single technical indicator reading."""
    timestamp: int
    value: float


# =============================================================================
# GATEWAY
# =============================================================================

class MarketDataGateway:
    """
    Typed fetch methods over the Massive REST API.

    Every request waits on the shared rate limiter, then is retried with
    exponential backoff on transient failures (429, 5xx, timeouts, connection
    errors). What happens after the last attempt fails depends on the
    endpoint's FailurePolicy.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[TokenBucket] = None,
        request_timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        policies: Optional[Dict[str, FailurePolicy]] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        if not api_key:
            raise ValueError("MASSIVE_API_KEY is not configured")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter or TokenBucket(rate=2.0, capacity=2)
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.policies = {**DEFAULT_POLICIES, **(policies or {})}
        self._sleep = sleep

    @classmethod
    def from_config(cls, market_config) -> "MarketDataGateway":
        """Build a gateway from a MarketDataConfig."""
        return cls(
            api_key=market_config.api_key,
            base_url=market_config.base_url,
            rate_limiter=TokenBucket(
                rate=market_config.requests_per_second,
                capacity=market_config.burst
            ),
            request_timeout=market_config.request_timeout,
            max_retries=market_config.max_retries,
            backoff_base=market_config.backoff_base
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an endpoint and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        last_error: Optional[UpstreamError] = None

        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(f"Retrying {endpoint} in {delay:.2f}s (attempt {attempt + 1}): {last_error}")
                self._sleep(delay)

            self.rate_limiter.acquire()
            logger.info(f"[Massive API] Fetching: {endpoint}")

            try:
                response = self.session.get(
                    url,
                    headers=headers,
                    params=params,
                    timeout=self.request_timeout
                )
            except requests.RequestException as e:
                last_error = UpstreamError(f"Massive API request failed: {e}")
                continue

            if response.ok:
                try:
                    return response.json()
                except ValueError as e:
                    raise UpstreamError(
                        f"Massive API returned invalid JSON for {endpoint}: {e}",
                        status_code=response.status_code
                    ) from e

            logger.error(f"[Massive API Error] {response.status_code}: {response.text[:500]}")
            last_error = UpstreamError(
                f"Massive API failed: {response.status_code} {response.reason}",
                status_code=response.status_code
            )
            if not last_error.is_transient:
                raise last_error

        raise last_error

    @staticmethod
    def _decode(name: str, parse: Callable[[Any], Any], data: Any) -> Any:
        """Run a response parser; a malformed payload is an upstream failure."""
        try:
            return parse(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed {name} response: {e!r}") from e

    def _apply_policy(self, name: str, error: Exception, on_failure: Optional[FailurePolicy]):
        policy = on_failure or self.policies[name]
        if policy is FailurePolicy.PROPAGATE:
            raise error
        logger.error(f"[Massive API] Failed to fetch {name}: {error}")
        if policy is FailurePolicy.SUPPRESS_TO_EMPTY:
            return []
        return None

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def get_aggregates(
        self,
        ticker: str,
        days: int = 30,
        on_failure: Optional[FailurePolicy] = None
    ) -> List[StockAggregate]:
        """Daily bars for the last ``days`` calendar days, oldest first."""
        today = datetime.now(timezone.utc).date()
        start = today - timedelta(days=days)
        endpoint = f"/v2/aggs/ticker/{ticker}/range/1/day/{start.isoformat()}/{today.isoformat()}"

        try:
            data = self._request(endpoint, {"adjusted": "true", "sort": "asc"})
            bars = self._decode(
                "aggregates",
                lambda d: [StockAggregate.from_api(r) for r in d.get("results") or []],
                data
            )
        except UpstreamError as e:
            return self._apply_policy("aggregates", e, on_failure)

        if not bars:
            raise NoDataError(f"No stock data available for {ticker}")
        return bars

    def get_ticker_details(
        self,
        ticker: str,
        on_failure: Optional[FailurePolicy] = None
    ) -> Optional[TickerDetails]:
        """Company profile, or None when the provider does not know the ticker."""
        try:
            data = self._request(f"/v3/reference/tickers/{ticker}")
            return self._decode(
                "ticker_details",
                lambda d: TickerDetails.from_api(d["results"]) if d.get("results") else None,
                data
            )
        except UpstreamError as e:
            if e.status_code == 404:
                return None
            return self._apply_policy("ticker_details", e, on_failure)

    def get_news(
        self,
        ticker: str,
        limit: int = 5,
        order: str = "desc",
        on_failure: Optional[FailurePolicy] = None
    ) -> List[NewsArticle]:
        """Most recent articles mentioning the ticker."""
        params = {
            "ticker": ticker,
            "limit": limit,
            "sort": "published_utc",
            "order": order
        }
        try:
            data = self._request("/v2/reference/news", params)
            return self._decode(
                "news",
                lambda d: [NewsArticle.from_api(r) for r in d.get("results") or []],
                data
            )
        except UpstreamError as e:
            return self._apply_policy("news", e, on_failure)

    def _get_indicator(
        self,
        name: str,
        ticker: str,
        window: int,
        limit: int,
        on_failure: Optional[FailurePolicy]
    ) -> List[IndicatorValue]:
        params = {
            "timespan": "day",
            "adjusted": "true",
            "window": window,
            "order": "desc",
            "limit": limit
        }
        try:
            data = self._request(f"/v1/indicators/{name}/{ticker}", params)
            return self._decode(
                name,
                lambda d: [
                    IndicatorValue(timestamp=v.get("timestamp", 0), value=float(v["value"]))
                    for v in (d.get("results") or {}).get("values") or []
                ],
                data
            )
        except UpstreamError as e:
            return self._apply_policy(name, e, on_failure)

    def get_rsi(
        self,
        ticker: str,
        window: int = 14,
        limit: int = 1,
        on_failure: Optional[FailurePolicy] = None
    ) -> List[IndicatorValue]:
        """Relative Strength Index, newest first."""
        return self._get_indicator("rsi", ticker, window, limit, on_failure)

    def get_sma(
        self,
        ticker: str,
        window: int,
        limit: int = 1,
        on_failure: Optional[FailurePolicy] = None
    ) -> List[IndicatorValue]:
        """Simple Moving Average, newest first."""
        return self._get_indicator("sma", ticker, window, limit, on_failure)

    def get_previous_close(
        self,
        ticker: str,
        on_failure: Optional[FailurePolicy] = None
    ) -> Optional[StockAggregate]:
        """Previous trading day's bar."""
        try:
            data = self._request(f"/v2/aggs/ticker/{ticker}/prev")
            return self._decode(
                "previous_close",
                lambda d: StockAggregate.from_api(d["results"][0]) if d.get("results") else None,
                data
            )
        except UpstreamError as e:
            return self._apply_policy("previous_close", e, on_failure)
