"""
Market data access for TickerAI.
"""

from .market_data import (
    FailurePolicy,
    IndicatorValue,
    MarketDataGateway,
    NewsArticle,
    StockAggregate,
    TickerDetails,
)
from .rate_limiter import TokenBucket
from .stock_metrics import StockMetrics, build_chart_frame, calculate_stock_metrics

__all__ = [
    'FailurePolicy',
    'IndicatorValue',
    'MarketDataGateway',
    'NewsArticle',
    'StockAggregate',
    'TickerDetails',
    'TokenBucket',
    'StockMetrics',
    'build_chart_frame',
    'calculate_stock_metrics',
]
