from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from core.llm_provider import ClaudeProvider, Message, OpenAIProvider, ToolCall, get_provider

TOOLS = [{"name": "get_stock_news", "description": "news", "parameters": {"type": "object", "properties": {}}}]


class RecordingCreate:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    def __call__(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.result


def openai_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def claude_client(create):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def conversation():
    call = ToolCall(id="t1", name="get_stock_news", arguments={"ticker": "AAPL"})
    call2 = ToolCall(id="t2", name="get_company_details", arguments={"ticker": "AAPL"})
    return [
        Message.system("sys"),
        Message.user("hi"),
        Message.assistant("", [call, call2]),
        Message.tool("news", "t1", "get_stock_news"),
        Message.tool("details", "t2", "get_company_details"),
    ]


def test_message_validation():
    with pytest.raises(ValueError):
        Message(role="robot", content="x")
    with pytest.raises(ValueError):
        Message(role="tool", content="x")


def test_openai_request_and_parse():
    tool_call = SimpleNamespace(
        id="t9",
        function=SimpleNamespace(name="get_stock_news", arguments='{"ticker": "TSLA"}')
    )
    response = SimpleNamespace(choices=[SimpleNamespace(
        message=SimpleNamespace(content=None, tool_calls=[tool_call]),
        finish_reason="tool_calls"
    )])
    create = RecordingCreate(result=response)
    provider = OpenAIProvider(model="gpt-test", client=openai_client(create))

    result = provider.chat(conversation(), tools=TOOLS, timeout=12.0)

    assert result.content == ""
    assert result.tool_calls == [ToolCall(id="t9", name="get_stock_news", arguments={"ticker": "TSLA"})]
    assert create.kwargs["model"] == "gpt-test"
    assert create.kwargs["timeout"] == 12.0
    assert create.kwargs["tools"][0]["function"]["name"] == "get_stock_news"
    sent = create.kwargs["messages"]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "tool", "tool"]
    assert sent[2]["tool_calls"][0]["function"]["arguments"] == '{"ticker": "AAPL"}'
    assert sent[3] == {"role": "tool", "tool_call_id": "t1", "content": "news"}


def test_openai_bad_arguments_become_empty():
    tool_call = SimpleNamespace(id="t1", function=SimpleNamespace(name="get_stock_news", arguments="{not json"))
    response = SimpleNamespace(choices=[SimpleNamespace(
        message=SimpleNamespace(content="", tool_calls=[tool_call]),
        finish_reason="tool_calls"
    )])
    provider = OpenAIProvider(client=openai_client(RecordingCreate(result=response)))

    assert provider.chat([Message.user("hi")]).tool_calls[0].arguments == {}


def test_openai_timeout_becomes_timeout_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    create = RecordingCreate(error=openai.APITimeoutError(request=request))
    provider = OpenAIProvider(client=openai_client(create))

    with pytest.raises(TimeoutError):
        provider.chat([Message.user("hi")], timeout=1.0)


def test_claude_merges_consecutive_tool_results():
    response = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Looking up. "),
            SimpleNamespace(type="tool_use", id="tu1", name="get_stock_data", input={"ticker": "AAPL"}),
        ],
        stop_reason="tool_use"
    )
    create = RecordingCreate(result=response)
    provider = ClaudeProvider(client=claude_client(create))

    result = provider.chat(conversation(), tools=TOOLS)

    assert result.content == "Looking up. "
    assert result.tool_calls[0].id == "tu1"
    assert create.kwargs["system"] == "sys"
    assert create.kwargs["tools"][0]["input_schema"] == TOOLS[0]["parameters"]
    sent = create.kwargs["messages"]
    assert [m["role"] for m in sent] == ["user", "assistant", "user"]
    assert [b["tool_use_id"] for b in sent[2]["content"]] == ["t1", "t2"]


def test_claude_timeout_becomes_timeout_error():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    create = RecordingCreate(error=anthropic.APITimeoutError(request=request))
    provider = ClaudeProvider(client=claude_client(create))

    with pytest.raises(TimeoutError):
        provider.chat([Message.user("hi")], timeout=1.0)


def test_unconfigured_provider():
    provider = OpenAIProvider(api_key=None)
    assert not provider.is_configured()
    with pytest.raises(RuntimeError):
        provider.chat([Message.user("hi")])


def test_get_provider():
    assert isinstance(get_provider("claude"), ClaudeProvider)
    assert get_provider("openai", model="gpt-x").model == "gpt-x"
    with pytest.raises(ValueError):
        get_provider("gemini")


def test_openai_non_object_arguments_become_empty():
    tool_call = SimpleNamespace(id="t1", function=SimpleNamespace(name="get_stock_news", arguments='["AAPL"]'))
    response = SimpleNamespace(choices=[SimpleNamespace(
        message=SimpleNamespace(content="", tool_calls=[tool_call]),
        finish_reason="tool_calls"
    )])
    provider = OpenAIProvider(client=openai_client(RecordingCreate(result=response)))

    assert provider.chat([Message.user("hi")]).tool_calls[0].arguments == {}


def test_claude_skips_empty_assistant_turns():
    response = SimpleNamespace(content=[SimpleNamespace(type="text", text="ok")], stop_reason="end_turn")
    create = RecordingCreate(result=response)
    provider = ClaudeProvider(client=claude_client(create))

    provider.chat([
        Message.user("Analyze AAPL"),
        Message.assistant(""),
        Message.user("And now?"),
        Message.assistant("AAPL is up."),
        Message.user("Why?"),
    ])

    sent = create.kwargs["messages"]
    assert [m["role"] for m in sent] == ["user", "user", "assistant", "user"]
    assert sent[2]["content"] == [{"type": "text", "text": "AAPL is up."}]
    assert all(m["content"] for m in sent)
