"""
Shared fakes for the TickerAI test suite.
"""

from typing import Any, Dict, List, Optional

import pytest
import requests

from core.llm_provider import LLMProvider, LLMResponse, Message, ToolCall
from data.market_data import MarketDataGateway


class FakeProvider(LLMProvider):
    """Replays scripted responses and records every call it receives."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def chat(self, messages, tools=None, timeout=None) -> LLMResponse:
        self.calls.append({"messages": list(messages), "tools": tools, "timeout": timeout})
        if not self.responses:
            raise AssertionError("FakeProvider ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def is_configured(self) -> bool:
        return True


def answer(content: str) -> LLMResponse:
    return LLMResponse(content=content)


def tool_request(*calls: ToolCall, content: str = "") -> LLMResponse:
    return LLMResponse(content=content, tool_calls=list(calls), finish_reason="tool_calls")


class FakeResponse:
    """Just enough of requests.Response for the gateway."""

    def __init__(self, status_code: int = 200, payload: Any = None, reason: str = ""):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.reason = reason or ("OK" if status_code < 400 else "Error")
        self.text = str(self._payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """
    Routes GET requests by URL path substring. Each route holds a list of
    outcomes consumed in order; the last one repeats.
    """

    def __init__(self, routes: Optional[Dict[str, List[Any]]] = None):
        self.routes = routes or {}
        self.requests: List[Dict[str, Any]] = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        for fragment, outcomes in self.routes.items():
            if fragment in url:
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return FakeResponse(404, {"status": "NOT_FOUND"}, reason="Not Found")

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in r["url"])


class NoopLimiter:
    def __init__(self):
        self.acquired = 0

    def acquire(self) -> float:
        self.acquired += 1
        return 0.0


def make_gateway(routes: Dict[str, List[Any]], **kwargs) -> MarketDataGateway:
    kwargs.setdefault("sleep", lambda seconds: None)
    kwargs.setdefault("rate_limiter", NoopLimiter())
    return MarketDataGateway(
        api_key="test-key",
        base_url="https://api.test",
        session=FakeSession(routes),
        **kwargs
    )


def bar(close: float, timestamp: int, volume: float = 1000.0, high: Optional[float] = None,
        low: Optional[float] = None) -> Dict[str, Any]:
    return {
        "t": timestamp,
        "o": close,
        "h": high if high is not None else close + 1,
        "l": low if low is not None else close - 1,
        "c": close,
        "v": volume
    }


def indicator(value: float) -> Dict[str, Any]:
    return {"results": {"values": [{"timestamp": 1700000000000, "value": value}]}}


DAY_MS = 86_400_000


@pytest.fixture
def stock_routes():
    """Two bars closing at 95 then 100, RSI 55, SMA10 98, SMA20 90."""
    return {
        "/v2/aggs/ticker/AAPL/range/": [FakeResponse(200, {"results": [
            bar(95.0, 1_700_000_000_000, volume=1000.0),
            bar(100.0, 1_700_000_000_000 + DAY_MS, volume=3000.0, high=101.5, low=97.25),
        ]})],
        "/v1/indicators/rsi/AAPL": [FakeResponse(200, indicator(55.0))],
        "/v1/indicators/sma/AAPL": [FakeResponse(200, indicator(98.0)), FakeResponse(200, indicator(90.0))],
    }



def not_json() -> FakeResponse:
    """A 200 whose body is an HTML error page."""
    return FakeResponse(200, requests.JSONDecodeError("Expecting value", "<html>", 0))
