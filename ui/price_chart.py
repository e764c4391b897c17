"""
Price chart for the active ticker.
"""

import streamlit as st
import plotly.graph_objects as go
import logging
from typing import Dict, Tuple

from errors import TickerAIError
from core.service import ChartData, StockAnalysisService, TIMEFRAMES

logger = logging.getLogger(__name__)


def build_price_figure(chart: ChartData) -> go.Figure:
    """Line chart of closing prices, green when up over the window, red when down."""
    df = chart.frame
    rising = df["price"].iloc[-1] >= df["price"].iloc[0]
    color = "#22c55e" if rising else "#ef4444"

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["date"],
        y=df["price"],
        mode="lines",
        line=dict(color=color, width=2),
        fill="tozeroy",
        fillcolor="rgba(34, 197, 94, 0.1)" if rising else "rgba(239, 68, 68, 0.1)",
        customdata=df[["open", "high", "low", "volume"]],
        hovertemplate=(
            "%{x}<br>Close: $%{y:.2f}<br>Open: $%{customdata[0]:.2f}"
            "<br>High: $%{customdata[1]:.2f}<br>Low: $%{customdata[2]:.2f}"
            "<br>Volume: %{customdata[3]:,.0f}<extra></extra>"
        ),
        name=chart.ticker
    ))

    low, high = df["price"].min(), df["price"].max()
    padding = (high - low) * 0.1 or high * 0.01

    fig.update_layout(
        title=f"{chart.ticker} - {chart.timeframe}",
        height=320,
        margin=dict(l=10, r=10, t=40, b=10),
        yaxis=dict(range=[low - padding, high + padding], tickprefix="$"),
        showlegend=False,
        hovermode="x unified"
    )
    return fig


def load_chart(
    service: StockAnalysisService,
    cache: Dict[Tuple[str, str], ChartData],
    ticker: str,
    timeframe: str
) -> ChartData:
    """Fetch a chart once per (ticker, timeframe). Failures are not cached."""
    key = (ticker, timeframe)
    if key not in cache:
        cache[key] = service.get_chart_data(ticker, timeframe)
    return cache[key]


def render_price_chart(service: StockAnalysisService, ticker: str) -> None:
    """Timeframe selector plus chart."""
    timeframe = st.radio(
        "Timeframe",
        list(TIMEFRAMES),
        index=1,
        horizontal=True,
        key=f"timeframe_{ticker}",
        label_visibility="collapsed"
    )

    if "chart_cache" not in st.session_state:
        st.session_state.chart_cache = {}

    try:
        chart = load_chart(service, st.session_state.chart_cache, ticker, timeframe)
    except TickerAIError as e:
        logger.error(f"Chart data error for {ticker}: {e}")
        st.warning("Failed to fetch chart data")
        return

    if chart.empty:
        st.info("No chart data available for this ticker and timeframe")
        return

    st.plotly_chart(build_price_figure(chart), use_container_width=True)
