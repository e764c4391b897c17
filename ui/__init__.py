"""
UI components for the TickerAI Streamlit app.
"""

from .sidebar import render_sidebar
from .chat_interface import render_chat_interface
from .price_chart import render_price_chart, build_price_figure

__all__ = [
    'render_sidebar',
    'render_chat_interface',
    'render_price_chart',
    'build_price_figure',
]
