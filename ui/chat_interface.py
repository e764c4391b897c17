"""
Chat Interface UI for TickerAI.

The first input of a conversation is a ticker; everything after it is a
follow-up question about that ticker.
"""

import streamlit as st
import logging
from typing import Any, Callable, Dict, Optional

from core.conversation import ConversationManager, ConversationSession
from errors import TickerAIError
from core.service import StockAnalysisService, validate_ticker_format
from ui.price_chart import render_price_chart

logger = logging.getLogger(__name__)


SENTIMENT_BADGES = {
    "bullish": ":green[Bullish]",
    "bearish": ":red[Bearish]",
    "neutral": ":gray[Neutral]",
}


def _tool_status(status) -> Callable[[str, Dict[str, Any]], None]:
    def on_tool_call(name: str, arguments: Dict[str, Any]) -> None:
        status.update(label=f"Running {name} ({arguments.get('ticker', '')})...")
    return on_tool_call


def _set_error(message: str, retry: Optional[Dict[str, Any]] = None) -> None:
    st.session_state.chat_error = {"message": message, "retry": retry}


def render_message(role: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Render a single chat message."""
    with st.chat_message(role):
        sentiment = (metadata or {}).get("sentiment")
        if sentiment:
            st.markdown(f"**Sentiment:** {SENTIMENT_BADGES.get(sentiment, sentiment)}")
        st.markdown(content)


def start_analysis(
    service: StockAnalysisService,
    conversation_manager: ConversationManager,
    ticker: str
) -> None:
    """Validate a ticker and run the initial analysis."""
    if not validate_ticker_format(ticker):
        _set_error(
            "Invalid ticker format. Please enter a valid stock ticker symbol (1-6 letters, "
            "like AAPL, TSLA, or BRK.B). Ticker symbols cannot contain numbers or special characters."
        )
        return

    with st.status("Validating ticker symbol...") as status:
        validation = service.validate_ticker(ticker)
        if validation.error:
            status.update(label="Validation failed", state="error")
            _set_error(
                "Unable to validate ticker. Please check your connection and try again.",
                retry={"kind": "analyze", "ticker": ticker}
            )
            return
        if not validation.valid:
            status.update(label="Unknown ticker", state="error")
            _set_error(f"\"{ticker}\" is not a valid stock ticker. Please check the spelling and try again.")
            return

        status.update(label=f"Analyzing {ticker}...")
        try:
            result = service.analyze(ticker, on_tool_call=_tool_status(status))
        except TickerAIError as e:
            status.update(label="Analysis failed", state="error")
            _set_error(f"Error: {e}", retry={"kind": "analyze", "ticker": ticker})
            return
        status.update(label="Analysis complete", state="complete")

    session = conversation_manager.create_session(result.ticker)
    session.add_assistant_message(result.analysis, sentiment=result.sentiment)
    st.session_state.chat_error = None


def ask_question(service: StockAnalysisService, session: ConversationSession, question: str) -> None:
    """Answer a follow-up question in the current conversation."""
    history = session.history_dicts()

    with st.status("Thinking...") as status:
        try:
            result = service.chat(
                session.ticker,
                question,
                prior_history=history,
                on_tool_call=_tool_status(status)
            )
        except TickerAIError as e:
            status.update(label="Failed", state="error")
            _set_error(f"Error: {e}", retry={"kind": "chat", "question": question})
            return
        status.update(label="Done", state="complete")

    session.add_user_message(question)
    session.add_assistant_message(result.answer)
    st.session_state.chat_error = None


def render_chat_interface(
    service: Optional[StockAnalysisService],
    conversation_manager: ConversationManager
) -> None:
    """
    Render the chat interface.

    Args:
        service: The configured service (None if API keys are missing)
        conversation_manager: In-memory conversation store
    """
    if "chat_error" not in st.session_state:
        st.session_state.chat_error = None

    session = conversation_manager.get_current_session()

    if session is None:
        st.subheader("Welcome to Stock Analysis AI")
        st.markdown(
            "Enter a stock ticker symbol (like AAPL, TSLA, or MSFT) to get a comprehensive analysis "
            "with real-time data, technical indicators, and AI-powered insights."
        )
        st.caption("Example tickers: AAPL - TSLA - MSFT - GOOGL - AMZN")
    else:
        st.caption(f"Analyzing {session.ticker}")
        if service:
            render_price_chart(service, session.ticker)
        for msg in session.messages:
            render_message(msg.role, msg.content, msg.metadata)

    error = st.session_state.chat_error
    if error:
        render_message("assistant", error["message"])
        if error["retry"] and service and st.button("Retry"):
            retry = error["retry"]
            if retry["kind"] == "analyze":
                start_analysis(service, conversation_manager, retry["ticker"])
            elif session is not None:
                ask_question(service, session, retry["question"])
            st.rerun()

    if service is None:
        st.chat_input("Configure API keys to start", disabled=True)
        return

    placeholder = (
        "Enter a stock ticker (e.g., AAPL)" if session is None
        else f"Ask a follow-up question about {session.ticker}"
    )
    prompt = st.chat_input(placeholder)
    if not prompt:
        return

    if session is None:
        start_analysis(service, conversation_manager, prompt.strip().upper())
    else:
        with st.chat_message("user"):
            st.markdown(prompt)
        ask_question(service, session, prompt)
    st.rerun()
