import pandas as pd
import pytest

from core.service import ChartData
from errors import UpstreamError
from ui.price_chart import build_price_figure, load_chart


class CountingService:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def get_chart_data(self, ticker, timeframe):
        self.calls.append((ticker, timeframe))
        if self.error:
            raise self.error
        frame = pd.DataFrame({
            "date": ["2024-01-01", "2024-01-02"],
            "price": [10.0, 12.0],
            "volume": [100, 200],
            "high": [11.0, 13.0],
            "low": [9.0, 11.0],
            "open": [10.0, 11.5],
            "timestamp": [1, 2]
        })
        return ChartData(ticker=ticker, timeframe=timeframe, frame=frame)


def test_chart_fetched_once_per_ticker_and_timeframe():
    service = CountingService()
    cache = {}

    first = load_chart(service, cache, "AAPL", "30D")
    again = load_chart(service, cache, "AAPL", "30D")
    load_chart(service, cache, "AAPL", "7D")
    load_chart(service, cache, "TSLA", "30D")

    assert again is first
    assert service.calls == [("AAPL", "30D"), ("AAPL", "7D"), ("TSLA", "30D")]


def test_chart_failures_are_not_cached():
    service = CountingService(error=UpstreamError("down", status_code=503))
    cache = {}

    with pytest.raises(UpstreamError):
        load_chart(service, cache, "AAPL", "30D")

    assert cache == {}


def test_price_figure_color_follows_direction():
    chart = CountingService().get_chart_data("AAPL", "30D")
    fig = build_price_figure(chart)
    assert fig.data[0].line.color == "#22c55e"
