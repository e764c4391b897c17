"""
Stock metrics derived from daily bars and technical indicators.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from .market_data import IndicatorValue, StockAggregate


@dataclass
class StockMetrics:
    """Point-in-time snapshot handed to the model. Never cached."""
    ticker: str
    current_price: float
    previous_close: float
    change: float
    change_percent: float
    day_high: float
    day_low: float
    volume: float
    avg_volume: float
    rsi: Optional[float]
    sma10: Optional[float]
    sma20: Optional[float]
    price_range_high: float
    price_range_low: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "currentPrice": self.current_price,
            "previousClose": self.previous_close,
            "change": self.change,
            "changePercent": self.change_percent,
            "dayHigh": self.day_high,
            "dayLow": self.day_low,
            "volume": self.volume,
            "avgVolume": self.avg_volume,
            "rsi": self.rsi,
            "sma10": self.sma10,
            "sma20": self.sma20,
            "priceRangeHigh": self.price_range_high,
            "priceRangeLow": self.price_range_low,
            "timestamp": self.timestamp.isoformat()
        }


def aggregates_to_frame(aggregates: List[StockAggregate]) -> pd.DataFrame:
    """Bars as a DataFrame sorted by timestamp."""
    df = pd.DataFrame([
        {
            "timestamp": a.timestamp,
            "open": a.open,
            "high": a.high,
            "low": a.low,
            "close": a.close,
            "volume": a.volume
        }
        for a in aggregates
    ])
    if df.empty:
        return df
    return df.sort_values("timestamp").reset_index(drop=True)


def _latest(values: List[IndicatorValue]) -> Optional[float]:
    return values[0].value if values else None


def calculate_stock_metrics(
    ticker: str,
    aggregates: List[StockAggregate],
    rsi: List[IndicatorValue],
    sma10: List[IndicatorValue],
    sma20: List[IndicatorValue],
    previous_bar: Optional[StockAggregate] = None
) -> StockMetrics:
    """
    Build the snapshot.

    The previous close is the second-to-last bar of the window. When the window
    only holds one bar, ``previous_bar`` (the provider's previous close) is used.
    With neither, change is zero.

    Args:
        ticker: Stock ticker symbol
        aggregates: Daily bars for the lookback window (at least one)
        rsi: RSI readings, newest first
        sma10: 10-day SMA readings, newest first
        sma20: 20-day SMA readings, newest first
        previous_bar: Optional fallback for the prior session

    Returns:
        StockMetrics
    """
    df = aggregates_to_frame(aggregates)
    if df.empty:
        raise ValueError(f"No price data for {ticker}")

    latest = df.iloc[-1]
    current = float(latest["close"])

    if len(df) >= 2:
        previous: Optional[float] = float(df.iloc[-2]["close"])
    elif previous_bar is not None and previous_bar.timestamp != int(latest["timestamp"]):
        previous = float(previous_bar.close)
    else:
        previous = None

    if previous:
        change = current - previous
        change_percent = change / previous * 100
    else:
        change = 0.0
        change_percent = 0.0

    return StockMetrics(
        ticker=ticker,
        current_price=current,
        previous_close=previous if previous is not None else current,
        change=change,
        change_percent=change_percent,
        day_high=float(latest["high"]),
        day_low=float(latest["low"]),
        volume=float(latest["volume"]),
        avg_volume=float(df["volume"].mean()),
        rsi=_latest(rsi),
        sma10=_latest(sma10),
        sma20=_latest(sma20),
        price_range_high=float(df["close"].max()),
        price_range_low=float(df["close"].min())
    )


def build_chart_frame(aggregates: List[StockAggregate]) -> pd.DataFrame:
    """Chart-ready frame: date, price (close rounded to cents), volume, high, low, open, timestamp."""
    df = aggregates_to_frame(aggregates)
    if df.empty:
        return pd.DataFrame(columns=["date", "price", "volume", "high", "low", "open", "timestamp"])

    dates = pd.to_datetime(df["timestamp"], unit="ms", utc=True).dt.strftime("%Y-%m-%d")
    return pd.DataFrame({
        "date": dates,
        "price": df["close"].round(2),
        "volume": df["volume"],
        "high": df["high"],
        "low": df["low"],
        "open": df["open"],
        "timestamp": df["timestamp"]
    })
