"""
Tool Definitions and Registry for TickerAI.

Each tool wraps one Market Data Gateway capability behind a pydantic input
schema and returns text for the model. Tools never raise: failures become a
readable error string that is fed back into the conversation.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from data.market_data import MarketDataGateway
from data.stock_metrics import calculate_stock_metrics
from errors import ToolNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDescriptor:
    """Static metadata the model uses to pick and call a tool."""
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters
        }


@dataclass
class ToolResult:
    """Result from tool execution."""
    success: bool
    data: Any
    error: Optional[str] = None

    def to_string(self) -> str:
        """Convert result to a string for LLM consumption."""
        if self.success:
            if isinstance(self.data, (dict, list)):
                return json.dumps(self.data, indent=2, default=str)
            return str(self.data)
        return f"Error: {self.error}"


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

class TickerInput(BaseModel):
    ticker: str = Field(min_length=1, description="The stock ticker symbol (e.g., AAPL, TSLA)")


class NewsInput(TickerInput):
    limit: int = Field(default=5, ge=1, le=50, description="Number of articles to fetch (default: 5)")


def _input_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    schema = model.model_json_schema()
    return {
        "type": "object",
        "properties": {
            name: {k: v for k, v in prop.items() if k != "title"}
            for name, prop in schema.get("properties", {}).items()
        },
        "required": schema.get("required", [])
    }


# =============================================================================
# TOOLS
# =============================================================================

class Tool(ABC):
    """A named, schema-described capability the model may invoke."""

    name: str = ""
    description: str = ""
    input_model: Type[BaseModel] = TickerInput

    def __init__(self, gateway: MarketDataGateway):
        self.gateway = gateway

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=_input_schema(self.input_model)
        )

    @abstractmethod
    def run(self, params: BaseModel) -> ToolResult:
        """Run the tool with validated parameters."""
        pass

    def _failure_label(self, arguments: Dict[str, Any]) -> str:
        return f"running {self.name}"

    def invoke(self, arguments: Dict[str, Any]) -> ToolResult:
        """Validate the model's arguments and run. Never raises."""
        try:
            params = self.input_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.warning(f"[Tool: {self.name}] Invalid arguments {arguments}: {e}")
            return ToolResult(False, None, f"Invalid arguments for {self.name}: {e.errors(include_url=False)}")

        try:
            return self.run(params)
        except Exception as e:
            logger.exception(f"[Tool Error] {self.name}")
            return ToolResult(False, None, f"{self._failure_label(arguments)}: {e}")


class StockDataTool(Tool):
    name = "get_stock_data"
    description = (
        "Fetches comprehensive stock market data for a given ticker symbol. "
        "Use this when you need the current stock price, price changes and trends, "
        "trading volume, technical indicators (RSI, moving averages) or the recent price range. "
        "Input: a stock ticker symbol (e.g., \"AAPL\", \"TSLA\", \"MSFT\"). "
        "Output: price, volume and technical analysis data."
    )
    input_model = TickerInput

    def __init__(self, gateway: MarketDataGateway, lookback_days: int = 30):
        super().__init__(gateway)
        self.lookback_days = lookback_days

    def _failure_label(self, arguments: Dict[str, Any]) -> str:
        return f"fetching stock data for {str(arguments.get('ticker', '')).upper()}"

    def run(self, params: TickerInput) -> ToolResult:
        ticker = params.ticker.upper()
        logger.info(f"[Tool: {self.name}] Fetching data for {ticker}")

        aggregates = self.gateway.get_aggregates(ticker, self.lookback_days)

        # Sequential on purpose; the gateway's rate limiter spaces the calls
        rsi = self.gateway.get_rsi(ticker, window=14, limit=1)
        sma10 = self.gateway.get_sma(ticker, window=10, limit=1)
        sma20 = self.gateway.get_sma(ticker, window=20, limit=1)

        previous_bar = None
        if len(aggregates) < 2:
            previous_bar = self.gateway.get_previous_close(ticker)

        metrics = calculate_stock_metrics(ticker, aggregates, rsi, sma10, sma20, previous_bar)
        return ToolResult(True, metrics.to_dict())


class NewsTool(Tool):
    name = "get_stock_news"
    description = (
        "Fetches recent news articles about a specific stock. "
        "Use this when you need the latest company news and announcements, market sentiment "
        "from news sources, or recent developments affecting the stock. "
        "Input: a stock ticker symbol and an optional article count. "
        "Output: recent articles with titles, descriptions and sentiment."
    )
    input_model = NewsInput

    def _failure_label(self, arguments: Dict[str, Any]) -> str:
        return f"fetching news for {str(arguments.get('ticker', '')).upper()}"

    @staticmethod
    def _format_date(published_utc: str) -> str:
        try:
            return datetime.fromisoformat(published_utc.replace("Z", "+00:00")).strftime("%Y-%m-%d")
        except ValueError:
            return published_utc

    def run(self, params: NewsInput) -> ToolResult:
        ticker = params.ticker.upper()
        logger.info(f"[Tool: {self.name}] Fetching news for {ticker}")

        articles = self.gateway.get_news(ticker, params.limit)[:params.limit]
        if not articles:
            return ToolResult(True, f"No recent news for {ticker}")

        formatted = [
            {
                "number": i,
                "title": article.title,
                "publisher": article.publisher,
                "published": self._format_date(article.published_utc),
                "description": article.description or "No description available.",
                "sentiment": article.sentiment,
                "url": article.article_url
            }
            for i, article in enumerate(articles, 1)
        ]

        return ToolResult(True, {
            "ticker": ticker,
            "newsCount": len(formatted),
            "articles": formatted
        })


class CompanyDetailsTool(Tool):
    name = "get_company_details"
    description = (
        "Fetches fundamental information about a company: name and description, market and "
        "exchange listing, market capitalization, number of employees and listing date. "
        "Input: a stock ticker symbol. "
        "Output: company profile and fundamental data."
    )
    input_model = TickerInput

    def _failure_label(self, arguments: Dict[str, Any]) -> str:
        return f"fetching company details for {str(arguments.get('ticker', '')).upper()}"

    def run(self, params: TickerInput) -> ToolResult:
        ticker = params.ticker.upper()
        logger.info(f"[Tool: {self.name}] Fetching details for {ticker}")

        details = self.gateway.get_ticker_details(ticker)
        if details is None:
            return ToolResult(True, f"No company details found for {ticker}")

        return ToolResult(True, {
            "ticker": details.ticker,
            "name": details.name,
            "description": details.description or "No description available",
            "market": details.market,
            "primaryExchange": details.primary_exchange,
            "type": details.type,
            "active": details.active,
            "marketCap": details.market_cap,
            "totalEmployees": details.total_employees,
            "listDate": details.list_date,
            "currency": details.currency_name
        })


# =============================================================================
# REGISTRY
# =============================================================================

class ToolRegistry:
    """
    Maps tool names to tools. Built once; the descriptor list never changes.
    """

    def __init__(self, tools: List[Tool]):
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool
        self._descriptors = tuple(tool.descriptor() for tool in tools)

    @classmethod
    def default(cls, gateway: MarketDataGateway, lookback_days: int = 30) -> "ToolRegistry":
        """The stock data, news and company details tools."""
        return cls([
            StockDataTool(gateway, lookback_days=lookback_days),
            NewsTool(gateway),
            CompanyDetailsTool(gateway),
        ])

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def get_tool_definitions(self) -> List[Dict[str, Any]]:
        """Tool definitions in the provider-neutral dict format."""
        return [d.to_dict() for d in self._descriptors]

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        """
        Execute a tool by name.

        Args:
            tool_name: Name of the tool to execute
            arguments: Tool arguments

        Returns:
            ToolResult with execution outcome
        """
        try:
            tool = self.get(tool_name)
        except ToolNotFound as e:
            logger.warning(f"[Agent] Tool not found: {tool_name}")
            return ToolResult(False, None, str(e))
        return tool.invoke(arguments)
