"""
TickerAI Agent - tool calling loop.

Drives the model through AwaitingModel -> ExecutingTools -> AwaitingModel ...
until it answers without requesting tools, or the iteration cap is hit.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from errors import MaxIterationsExceeded, ModelInvocationError, TurnTimeout
from .llm_provider import LLMProvider, LLMResponse, Message, ToolCall
from .tools import ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are TickerAI, an AI-powered stock analysis assistant.

Your purpose is to help users understand stocks by:
1. Fetching real-time market data using your tools
2. Analyzing technical indicators and price trends
3. Reviewing recent news and sentiment
4. Providing clear, educational insights

TOOLS AVAILABLE:
- get_stock_data: Fetch current price, volume, and technical indicators
- get_stock_news: Get recent news articles and sentiment
- get_company_details: Get company information and fundamentals

BEHAVIOR GUIDELINES:
- Always use tools to get fresh data - never make up numbers
- Be conversational and helpful, not robotic
- Explain technical concepts in simple terms
- When analyzing, consider: price trends, volume, RSI, moving averages, and news sentiment
- If you see concerning patterns, mention them objectively
- For follow-up questions, use context from the conversation

CRITICAL RULE:
You provide educational analysis and market insights, NOT financial advice.
Never tell users to buy or sell. Instead, present data and let them decide.

RESPONSE FORMATTING:

**For INITIAL stock analysis (when user first asks about a ticker):**
Structure your response in clear sections with headers:

#### Summary
[2-3 sentence overview of the stock's current state]

#### Current Market Data
- Current Price: $XXX.XX
- Change: +$X.XX (+X.XX%)
- Day's Range: $XXX.XX - $XXX.XX
- Volume: X.X million (compared to avg of X.X million)
- RSI: XX.XX (interpretation)
- Moving Averages:
  - SMA10: $XXX.XX
  - SMA20: $XXX.XX

#### Recent News Sentiment
[Brief paragraph describing the news landscape with 2-3 key articles mentioned]

#### Key Insights
[2-3 paragraphs discussing what the data means - price trends, technical signals, sentiment]

#### Things to Monitor
[3-5 bullet points of specific things to watch]

**For FOLLOW-UP questions:**
Respond naturally in conversational paragraphs - DO NOT use excessive bullet points.
- Write 2-4 coherent paragraphs
- Only use bullets for lists of 3+ items where it truly aids clarity
- Be direct and concise
- Reference previous context when relevant

When a user mentions a stock, proactively fetch its data and recent news."""


@dataclass
class AgentTurn:
    """Outcome of one completed turn."""
    content: str
    messages: List[Message]
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    iterations: int = 0


class StockAnalysisAgent:
    """
    Runs one turn at a time. Holds no conversation state between turns:
    history is passed in and copied, never mutated.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        tools: ToolRegistry,
        system_prompt: Optional[str] = None,
        max_iterations: int = 5,
        model_timeout: Optional[float] = 60.0,
        turn_timeout: Optional[float] = 180.0,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.llm = llm_provider
        self.tools = tools
        self.system_prompt = system_prompt or SYSTEM_PROMPT
        self.max_iterations = max_iterations
        self.model_timeout = model_timeout
        self.turn_timeout = turn_timeout
        self._clock = clock
        self._tool_definitions = tools.get_tool_definitions()

    def _build_messages(self, user_input: str, history: Optional[List[Message]]) -> List[Message]:
        """Build message list including system prompt and history."""
        messages = [Message.system(self.system_prompt)]
        messages.extend(history or [])
        messages.append(Message.user(user_input))
        return messages

    def _call_timeout(self, deadline: Optional[float]) -> Optional[float]:
        """Timeout for the next model call, bounded by the turn deadline."""
        if deadline is None:
            return self.model_timeout

        remaining = deadline - self._clock()
        if remaining <= 0:
            raise TurnTimeout(f"Turn exceeded {self.turn_timeout}s")
        if self.model_timeout is None:
            return remaining
        return min(self.model_timeout, remaining)

    def _invoke_model(self, messages: List[Message], deadline: Optional[float]) -> LLMResponse:
        timeout = self._call_timeout(deadline)
        try:
            return self.llm.chat(
                messages=list(messages),
                tools=self._tool_definitions,
                timeout=timeout
            )
        except TimeoutError as e:
            logger.error(f"[Agent] Model call timed out: {e}")
            raise TurnTimeout(f"Model call timed out after {timeout}s") from e
        except Exception as e:
            logger.exception("[Agent] LLM error")
            raise ModelInvocationError(f"LLM error: {e}") from e

    @staticmethod
    def _with_call_ids(tool_calls: List[ToolCall], iteration: int) -> List[ToolCall]:
        """Give every call an id so its result can be correlated."""
        identified = []
        for index, tc in enumerate(tool_calls):
            if not tc.id:
                call_id = f"call_{iteration}_{index}"
                logger.warning(f"[Agent] Tool call missing ID for {tc.name}, assigned {call_id}")
                tc = ToolCall(id=call_id, name=tc.name, arguments=tc.arguments)
            identified.append(tc)
        return identified

    @staticmethod
    def _notify(on_tool_call: Callable[[str, Dict[str, Any]], None], tool_call: ToolCall) -> None:
        """Progress callbacks are display only and never abort the turn."""
        try:
            on_tool_call(tool_call.name, tool_call.arguments)
        except Exception:
            logger.exception(f"[Agent] on_tool_call hook failed for {tool_call.name}")

    def _execute_tool_call(self, tool_call: ToolCall) -> ToolResult:
        """Execute a single tool call."""
        logger.info(f"[Agent] Calling {tool_call.name} with: {tool_call.arguments}")
        result = self.tools.execute(tool_call.name, tool_call.arguments)
        logger.info(f"[Agent] Tool {tool_call.name} result: success={result.success}")
        return result

    def run(
        self,
        user_input: str,
        history: Optional[List[Message]] = None,
        on_tool_call: Optional[Callable[[str, Dict[str, Any]], None]] = None
    ) -> AgentTurn:
        """
        Process one user input to a final answer.

        Args:
            user_input: The new user message
            history: Prior user/assistant messages, oldest first. Not modified.
            on_tool_call: Optional callback fired before each tool runs

        Returns:
            AgentTurn with the answer and the full working message sequence

        Raises:
            MaxIterationsExceeded: the model still wanted tools after the last allowed call
            ModelInvocationError: the model call failed
            TurnTimeout: a model call or the whole turn ran out of time
        """
        logger.info(f"[Agent] Processing: \"{user_input[:100]}\"")

        messages = self._build_messages(user_input, history)
        deadline = self._clock() + self.turn_timeout if self.turn_timeout is not None else None

        all_tool_calls: List[Dict[str, Any]] = []
        all_tool_results: List[Dict[str, Any]] = []

        for iteration in range(1, self.max_iterations + 1):
            logger.info(f"[Agent] Iteration {iteration}/{self.max_iterations}")

            response = self._invoke_model(messages, deadline)

            # If no tool calls, we're done
            if not response.tool_calls:
                messages.append(Message.assistant(response.content))
                logger.info("[Agent] Response generated successfully")
                return AgentTurn(
                    content=response.content,
                    messages=messages,
                    tool_calls=all_tool_calls,
                    tool_results=all_tool_results,
                    iterations=iteration
                )

            tool_calls = self._with_call_ids(response.tool_calls, iteration)
            logger.info(f"[Agent] Executing {len(tool_calls)} tool call(s)")
            messages.append(Message.assistant(response.content, tool_calls))

            for tc in tool_calls:
                all_tool_calls.append({
                    "id": tc.id,
                    "name": tc.name,
                    "arguments": tc.arguments
                })

                if on_tool_call:
                    self._notify(on_tool_call, tc)

                result = self._execute_tool_call(tc)
                all_tool_results.append({
                    "tool_call_id": tc.id,
                    "name": tc.name,
                    "success": result.success,
                    "data": result.data,
                    "error": result.error
                })

                messages.append(Message.tool(
                    content=result.to_string(),
                    tool_call_id=tc.id,
                    name=tc.name
                ))

        logger.error(f"[Agent] Max iterations reached ({self.max_iterations})")
        raise MaxIterationsExceeded(self.max_iterations)


def create_agent(config=None, gateway=None) -> StockAnalysisAgent:
    """
    Factory function to create a configured agent.

    Args:
        config: Optional AppConfig; defaults to the global config
        gateway: Optional MarketDataGateway to share with other callers

    Returns:
        Configured StockAnalysisAgent
    """
    from config import get_config
    from data.market_data import MarketDataGateway
    from .llm_provider import get_provider

    config = config or get_config()

    llm = get_provider(
        config.llm.provider,
        api_key=config.llm.get_api_key(),
        model=config.llm.get_model(),
        max_tokens=config.llm.max_tokens
    )
    if not llm.is_configured():
        raise ValueError(f"LLM provider '{config.llm.provider}' is not configured. Check API key.")

    gateway = gateway or MarketDataGateway.from_config(config.market_data)
    tools = ToolRegistry.default(gateway, lookback_days=config.market_data.lookback_days)

    return StockAnalysisAgent(
        llm_provider=llm,
        tools=tools,
        max_iterations=config.agent.max_iterations,
        model_timeout=config.agent.model_timeout,
        turn_timeout=config.agent.turn_timeout
    )
