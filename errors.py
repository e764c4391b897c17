"""
Exception hierarchy for TickerAI.
"""

from typing import Optional


class TickerAIError(Exception):
    """Base class for all TickerAI errors."""


# Market data

class UpstreamError(TickerAIError):
    """The market data provider returned a failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class NoDataError(TickerAIError):
    """A required dataset came back empty."""


# Tools

class ToolNotFound(TickerAIError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


# Agent

class AgentError(TickerAIError):
    """A turn could not be completed."""


class MaxIterationsExceeded(AgentError):
    """The model kept requesting tools until the iteration cap."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Max iterations reached ({max_iterations})")
        self.max_iterations = max_iterations


class ModelInvocationError(AgentError):
    """The language model call itself failed."""


class TurnTimeout(AgentError):
    """A model call or the whole turn ran past its deadline."""


# Service

class InvalidRequestError(TickerAIError, ValueError):
    """Request rejected before the agent runs."""


class InvalidTickerError(InvalidRequestError):
    """Ticker symbol is not well formed."""


class AnalysisFailedError(TickerAIError):
    """An analyze or chat request failed."""
