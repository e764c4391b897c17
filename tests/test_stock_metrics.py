import pytest

from conftest import DAY_MS
from data.market_data import IndicatorValue, StockAggregate
from data.stock_metrics import build_chart_frame, calculate_stock_metrics

T0 = 1_704_067_200_000  # 2024-01-01 UTC


def agg(close, timestamp, volume=1000.0, high=None, low=None):
    return StockAggregate(
        timestamp=timestamp,
        open=close,
        high=high if high is not None else close + 1,
        low=low if low is not None else close - 1,
        close=close,
        volume=volume
    )


def value(v):
    return [IndicatorValue(timestamp=T0, value=v)]


def test_change_from_second_to_last_bar():
    bars = [agg(95.0, T0, volume=1000.0), agg(100.0, T0 + DAY_MS, volume=3000.0, high=101.5, low=97.25)]

    metrics = calculate_stock_metrics("AAPL", bars, value(55.0), value(98.0), value(90.0))

    assert metrics.current_price == 100.0
    assert metrics.previous_close == 95.0
    assert metrics.change == pytest.approx(5.0)
    assert metrics.change_percent == pytest.approx(5.263, abs=1e-3)
    assert metrics.day_high == 101.5
    assert metrics.day_low == 97.25
    assert metrics.volume == 3000.0
    assert metrics.avg_volume == 2000.0
    assert metrics.rsi == 55.0
    assert metrics.sma10 == 98.0
    assert metrics.sma20 == 90.0
    assert metrics.price_range_high == 100.0
    assert metrics.price_range_low == 95.0


def test_bars_are_sorted_before_use():
    bars = [agg(100.0, T0 + DAY_MS), agg(95.0, T0)]
    metrics = calculate_stock_metrics("AAPL", bars, [], [], [])
    assert metrics.current_price == 100.0
    assert metrics.previous_close == 95.0


def test_missing_indicators_are_none():
    metrics = calculate_stock_metrics("AAPL", [agg(10.0, T0), agg(11.0, T0 + DAY_MS)], [], [], [])
    assert metrics.rsi is None
    assert metrics.sma10 is None
    assert metrics.sma20 is None


def test_single_bar_uses_previous_close_fallback():
    previous = agg(50.0, T0 - DAY_MS)

    metrics = calculate_stock_metrics("AAPL", [agg(55.0, T0)], [], [], [], previous_bar=previous)

    assert metrics.previous_close == 50.0
    assert metrics.change == pytest.approx(5.0)
    assert metrics.change_percent == pytest.approx(10.0)


def test_single_bar_ignores_fallback_for_same_session():
    same_day = agg(55.0, T0)

    metrics = calculate_stock_metrics("AAPL", [agg(55.0, T0)], [], [], [], previous_bar=same_day)

    assert metrics.change == 0.0
    assert metrics.change_percent == 0.0
    assert metrics.previous_close == 55.0


def test_single_bar_without_fallback_has_zero_change():
    metrics = calculate_stock_metrics("AAPL", [agg(55.0, T0)], [], [], [])
    assert metrics.change == 0.0
    assert metrics.change_percent == 0.0


def test_no_bars_is_an_error():
    with pytest.raises(ValueError):
        calculate_stock_metrics("AAPL", [], [], [], [])


def test_to_dict_keys():
    metrics = calculate_stock_metrics("AAPL", [agg(10.0, T0), agg(11.0, T0 + DAY_MS)], value(40.0), [], [])
    data = metrics.to_dict()

    assert list(data) == [
        "ticker", "currentPrice", "previousClose", "change", "changePercent", "dayHigh", "dayLow",
        "volume", "avgVolume", "rsi", "sma10", "sma20", "priceRangeHigh", "priceRangeLow", "timestamp"
    ]
    assert data["rsi"] == 40.0
    assert isinstance(data["timestamp"], str)


def test_chart_frame():
    frame = build_chart_frame([agg(101.234, T0 + DAY_MS), agg(99.0, T0)])

    assert list(frame["date"]) == ["2024-01-01", "2024-01-02"]
    assert list(frame["price"]) == [99.0, 101.23]
    assert list(frame.columns) == ["date", "price", "volume", "high", "low", "open", "timestamp"]


def test_chart_frame_empty():
    frame = build_chart_frame([])
    assert frame.empty
    assert "price" in frame.columns
