"""
Core components for TickerAI.
"""

from .llm_provider import LLMProvider, ClaudeProvider, OpenAIProvider, Message, ToolCall, get_provider
from .tools import ToolRegistry, ToolDescriptor, ToolResult
from .agent import StockAnalysisAgent, AgentTurn, create_agent
from .conversation import ConversationManager, ConversationSession
from .service import StockAnalysisService, create_service, validate_ticker_format

__all__ = [
    'LLMProvider',
    'ClaudeProvider',
    'OpenAIProvider',
    'Message',
    'ToolCall',
    'get_provider',
    'ToolRegistry',
    'ToolDescriptor',
    'ToolResult',
    'StockAnalysisAgent',
    'AgentTurn',
    'create_agent',
    'ConversationManager',
    'ConversationSession',
    'StockAnalysisService',
    'create_service',
    'validate_ticker_format',
]
