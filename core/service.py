"""
Stock analysis service: the Analyze and Chat operations the UI calls.

Validates input before any provider quota is spent, runs one agent turn per
request, and turns agent failures into a single caller-facing error.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from errors import (
    AgentError,
    AnalysisFailedError,
    InvalidRequestError,
    InvalidTickerError,
    NoDataError,
    UpstreamError,
)
from data.market_data import FailurePolicy, MarketDataGateway
from data.stock_metrics import build_chart_frame
from .agent import StockAnalysisAgent
from .llm_provider import Message

logger = logging.getLogger(__name__)


TICKER_PATTERN = re.compile(r"^[A-Z]{1,6}([.-][A-Z])?$")

MAX_QUESTION_LENGTH = 500

TIMEFRAMES = {"7D": 7, "30D": 30, "90D": 90}

ANALYZE_PROMPT = (
    "Provide a comprehensive analysis of {ticker}. Include current price, technical indicators, "
    "recent news sentiment, and key insights."
)

BULLISH_KEYWORDS = ["bullish", "positive", "upward", "growth", "strong buy", "buy"]
BEARISH_KEYWORDS = ["bearish", "negative", "downward", "decline", "sell", "weak"]


def validate_ticker_format(ticker: str) -> bool:
    """1-6 capital letters, optionally followed by '.' or '-' and one more letter."""
    return bool(TICKER_PATTERN.match(ticker or ""))


def detect_sentiment(text: str) -> str:
    """Keyword vote over an analysis: bullish, bearish or neutral."""
    lowered = text.lower()
    bullish = sum(1 for keyword in BULLISH_KEYWORDS if keyword in lowered)
    bearish = sum(1 for keyword in BEARISH_KEYWORDS if keyword in lowered)

    if bullish > bearish:
        return "bullish"
    if bearish > bullish:
        return "bearish"
    return "neutral"


@dataclass
class TickerValidation:
    valid: bool
    ticker: str
    name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class AnalysisResult:
    ticker: str
    analysis: str
    sentiment: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ChatResult:
    ticker: str
    answer: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ChartData:
    ticker: str
    timeframe: str
    frame: pd.DataFrame

    @property
    def empty(self) -> bool:
        return self.frame.empty


class StockAnalysisService:
    """Analyze / Chat entry points over one agent and one gateway."""

    def __init__(self, agent: StockAnalysisAgent, gateway: MarketDataGateway):
        self.agent = agent
        self.gateway = gateway

    @staticmethod
    def _require_valid_format(ticker: str) -> str:
        if not validate_ticker_format(ticker):
            raise InvalidTickerError(
                f"Invalid ticker format: {ticker!r}. Enter 1-6 letters, like AAPL, TSLA, or BRK.B."
            )
        return ticker

    def validate_ticker(self, ticker: str) -> TickerValidation:
        """Format check, then ask the provider whether the ticker exists."""
        if not validate_ticker_format(ticker):
            return TickerValidation(valid=False, ticker=ticker, error="Invalid ticker format")

        try:
            details = self.gateway.get_ticker_details(ticker, on_failure=FailurePolicy.PROPAGATE)
        except UpstreamError as e:
            logger.error(f"Ticker validation error for {ticker}: {e}")
            return TickerValidation(valid=False, ticker=ticker, error="Unable to validate ticker")

        if details is None or not details.ticker:
            return TickerValidation(valid=False, ticker=ticker)
        return TickerValidation(valid=True, ticker=details.ticker, name=details.name)

    def analyze(
        self,
        ticker: str,
        on_tool_call: Optional[Callable[[str, Dict[str, Any]], None]] = None
    ) -> AnalysisResult:
        """
        Run a full analysis turn for a ticker.

        Raises:
            InvalidTickerError: bad ticker format
            AnalysisFailedError: the turn failed
        """
        self._require_valid_format(ticker)
        logger.info(f"Analyzing ticker: {ticker}")

        try:
            turn = self.agent.run(ANALYZE_PROMPT.format(ticker=ticker), on_tool_call=on_tool_call)
        except AgentError as e:
            logger.error(f"Error analyzing {ticker}: {e}")
            raise AnalysisFailedError(f"Failed to analyze {ticker}: {e}") from e

        return AnalysisResult(
            ticker=ticker,
            analysis=turn.content,
            sentiment=detect_sentiment(turn.content)
        )

    def chat(
        self,
        ticker: str,
        question: str,
        prior_history: Optional[List[Dict[str, str]]] = None,
        on_tool_call: Optional[Callable[[str, Dict[str, Any]], None]] = None
    ) -> ChatResult:
        """
        Answer a follow-up question with the prior conversation as context.

        Args:
            ticker: The ticker under discussion
            question: The user's question (1-500 characters)
            prior_history: Earlier ``{role, content}`` turns, role user or assistant

        Raises:
            InvalidTickerError: bad ticker format
            InvalidRequestError: bad question or history
            AnalysisFailedError: the turn failed
        """
        self._require_valid_format(ticker)

        question = (question or "").strip()
        if not question or len(question) > MAX_QUESTION_LENGTH:
            raise InvalidRequestError(f"Question must be 1-{MAX_QUESTION_LENGTH} characters")

        history = []
        for item in prior_history or []:
            if item.get("role") not in ("user", "assistant"):
                raise InvalidRequestError(f"Unsupported history role: {item.get('role')}")
            history.append(Message(role=item["role"], content=item.get("content", "")))

        logger.info(f"Chat question for {ticker}: {question}")

        try:
            turn = self.agent.run(f"Regarding {ticker}: {question}", history=history, on_tool_call=on_tool_call)
        except AgentError as e:
            logger.error(f"Error in chat for {ticker}: {e}")
            raise AnalysisFailedError(f"Failed to process question: {e}") from e

        return ChatResult(ticker=ticker, answer=turn.content)

    def get_chart_data(self, ticker: str, timeframe: str = "30D") -> ChartData:
        """Daily closes for the chart. Unknown timeframes fall back to 30D."""
        self._require_valid_format(ticker)
        if timeframe not in TIMEFRAMES:
            timeframe = "30D"

        try:
            aggregates = self.gateway.get_aggregates(ticker, TIMEFRAMES[timeframe])
        except NoDataError:
            logger.info(f"No chart data for {ticker} ({timeframe})")
            aggregates = []

        frame = build_chart_frame(aggregates)
        logger.info(f"Fetched {len(frame)} chart points for {ticker}")
        return ChartData(ticker=ticker, timeframe=timeframe, frame=frame)


def create_service(config=None) -> StockAnalysisService:
    """Build a service with a gateway shared between the agent's tools and the chart."""
    from config import get_config
    from .agent import create_agent

    config = config or get_config()
    gateway = MarketDataGateway.from_config(config.market_data)
    return StockAnalysisService(agent=create_agent(config, gateway=gateway), gateway=gateway)
