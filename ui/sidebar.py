"""
Sidebar UI for TickerAI.

New Chat button, recent conversation history, and provider status.
"""

import streamlit as st
import logging

from config import get_config
from core.conversation import ConversationManager

logger = logging.getLogger(__name__)


def render_sidebar(conversation_manager: ConversationManager) -> None:
    """
    Render the sidebar.

    Args:
        conversation_manager: In-memory conversation store
    """
    config = get_config()

    with st.sidebar:
        st.header("TickerAI")

        if st.button("New Chat", type="primary", use_container_width=True):
            conversation_manager.clear_current_session()
            st.session_state.chat_error = None
            st.rerun()

        st.divider()
        st.subheader("Recent")

        sessions = conversation_manager.list_sessions()
        if not sessions:
            st.caption("No conversations yet")

        current = conversation_manager.get_current_session()
        for info in sessions:
            is_current = current is not None and current.id == info["id"]
            label = f"{info['preview']} ({info['message_count']})"
            if st.button(
                label,
                key=f"session_{info['id']}",
                type="secondary",
                disabled=is_current,
                use_container_width=True
            ):
                conversation_manager.set_current_session(info["id"])
                st.session_state.chat_error = None
                st.rerun()

        st.divider()
        with st.expander("Settings"):
            st.caption(f"Model: {config.llm.provider} / {config.llm.get_model()}")
            st.caption(f"Market data: {'configured' if config.market_data.api_key else 'MASSIVE_API_KEY missing'}")
            st.caption(f"History kept: {config.max_history} conversations (this browser session only)")
