"""
TickerAI - Main Streamlit Application

Type a stock ticker, get an AI-generated research summary with a price chart,
then ask follow-up questions.

Run with: streamlit run app.py
"""

import streamlit as st
from pathlib import Path
import sys
import logging

# Add project root to Python path to fix relative imports
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from config import get_config

_config = get_config()

# Configure logging
logging.basicConfig(
    level=_config.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Page configuration - must be first Streamlit command
st.set_page_config(
    page_title=_config.page_title,
    page_icon=_config.page_icon,
    layout=_config.layout,
    initial_sidebar_state="expanded"
)

# Import application modules
from core.conversation import ConversationManager
from core.service import StockAnalysisService, create_service
from ui.sidebar import render_sidebar
from ui.chat_interface import render_chat_interface


# Custom CSS
st.markdown("""
<style>
    .main .block-container {
        padding-top: 2rem;
        padding-bottom: 2rem;
    }

    .stChatMessage [data-testid="stMarkdownContainer"] h4 {
        margin-top: 1rem;
        margin-bottom: 0.5rem;
        font-weight: 600;
    }

    .stChatMessage [data-testid="stMarkdownContainer"] li {
        margin-bottom: 0.3rem;
        line-height: 1.5;
    }
</style>
""", unsafe_allow_html=True)


def initialize_session_state():
    """Initialize all session state variables."""
    config = get_config()

    if "conversation_manager" not in st.session_state:
        st.session_state.conversation_manager = ConversationManager(max_sessions=config.max_history)

    if "service" not in st.session_state:
        st.session_state.service = None

    if "chat_error" not in st.session_state:
        st.session_state.chat_error = None


def get_or_create_service() -> StockAnalysisService | None:
    """Create the service once per browser session."""
    if st.session_state.service is not None:
        return st.session_state.service

    try:
        st.session_state.service = create_service()
    except ValueError as e:
        logger.error(f"Failed to create service: {e}")
        st.error(f"Failed to initialize: {e}")
        return None
    return st.session_state.service


def main():
    """Main application entry point."""
    initialize_session_state()

    render_sidebar(st.session_state.conversation_manager)

    service = get_or_create_service()

    st.title(":chart_with_upwards_trend: TickerAI")

    render_chat_interface(
        service=service,
        conversation_manager=st.session_state.conversation_manager
    )

    st.markdown("---")
    st.markdown(
        "<div style='text-align: center; color: gray; font-size: 0.8rem;'>"
        "TickerAI | Market data from Massive | Educational analysis, not financial advice"
        "</div>",
        unsafe_allow_html=True
    )


if __name__ == "__main__":
    main()
