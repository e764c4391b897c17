"""
Configuration module for TickerAI.

Handles API keys, market data client settings, agent limits, and application configuration.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""
    provider: str = "openai"  # "openai" or "claude"

    # OpenAI settings
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-5-nano"

    # Claude settings
    claude_api_key: Optional[str] = None
    claude_model: str = "claude-sonnet-4-20250514"

    # Common settings
    max_tokens: int = 4096

    def get_api_key(self) -> Optional[str]:
        """Get the API key for the current provider."""
        if self.provider == "claude":
            return self.claude_api_key or os.environ.get("ANTHROPIC_API_KEY")
        return self.openai_api_key or os.environ.get("OPENAI_API_KEY")

    def get_model(self) -> str:
        """Get the model name for the current provider."""
        if self.provider == "claude":
            return self.claude_model
        return self.openai_model


@dataclass
class MarketDataConfig:
    """Configuration for the Massive (formerly Polygon.io) market data API."""
    api_key: Optional[str] = None
    base_url: str = "https://api.massive.com"

    # Per-request socket timeout in seconds
    request_timeout: float = 10.0

    # Retries for transient failures (429, 5xx, timeouts)
    max_retries: int = 3
    backoff_base: float = 0.5

    # Token bucket shared by every outbound call
    requests_per_second: float = 2.0
    burst: int = 2

    # Lookback window for the stock data tool
    lookback_days: int = 30


@dataclass
class AgentConfig:
    """Limits for the tool calling loop."""
    max_iterations: int = 5

    # Wall-clock limits in seconds
    model_timeout: float = 60.0
    turn_timeout: float = 180.0


@dataclass
class AppConfig:
    """Main application configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)

    # UI settings
    page_title: str = "TickerAI"
    page_icon: str = ":chart_with_upwards_trend:"
    layout: str = "wide"
    max_history: int = 20

    log_level: str = "INFO"


def load_config() -> AppConfig:
    """Load configuration from environment and defaults."""
    config = AppConfig()

    if os.environ.get("OPENAI_API_KEY"):
        config.llm.openai_api_key = os.environ["OPENAI_API_KEY"]

    if os.environ.get("ANTHROPIC_API_KEY"):
        config.llm.claude_api_key = os.environ["ANTHROPIC_API_KEY"]

    if os.environ.get("TICKERAI_LLM_PROVIDER"):
        config.llm.provider = os.environ["TICKERAI_LLM_PROVIDER"].lower()

    if os.environ.get("TICKERAI_MODEL"):
        if config.llm.provider == "claude":
            config.llm.claude_model = os.environ["TICKERAI_MODEL"]
        else:
            config.llm.openai_model = os.environ["TICKERAI_MODEL"]

    if os.environ.get("MASSIVE_API_KEY"):
        config.market_data.api_key = os.environ["MASSIVE_API_KEY"]

    if os.environ.get("LOG_LEVEL"):
        config.log_level = os.environ["LOG_LEVEL"].upper()

    return config


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def update_config(**kwargs) -> AppConfig:
    """Update config with new values."""
    config = get_config()

    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        elif hasattr(config.llm, key):
            setattr(config.llm, key, value)
        elif hasattr(config.market_data, key):
            setattr(config.market_data, key, value)
        elif hasattr(config.agent, key):
            setattr(config.agent, key, value)

    return config
