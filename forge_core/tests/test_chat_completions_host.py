import json
import threading
import time

import httpx
import pytest

from forge_core.domain.cancellation import CancellationTokenSource
from forge_core.domain.exceptions import LanguageModelError, RequestCancelledError, ValidationError
from forge_core.domain.models import ChatMessage, ModelSelector, TextPart
from forge_core.providers.chat_completions_host import ChatCompletionsHost
from forge_core.tools.definitions import ToolCall, ToolDef, ToolParam


class SettingsStub:
    copilot_api_key = "ghp-token-123456"
    copilot_base_url = "https://models.example.test/inference"
    http_timeout = 1.0


class FakeResponse:
    def __init__(self, lines, status_code=200, body=""):
        self.status_code = status_code
        self._lines = list(lines)
        self.text = body

    def read(self):
        return self.text.encode()

    def close(self):
        pass

    def iter_lines(self):
        for line in self._lines:
            yield line


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def _install_client(monkeypatch, response, calls):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def close(self):
            pass

        def stream(self, method, url, **kw):
            calls.append((url, kw))
            return StreamContext(response)

    monkeypatch.setattr("httpx.Client", Client)


def _sse(obj):
    return "data: " + json.dumps(obj)


def test_send_request_assembles_tool_call_deltas(monkeypatch):
    lines = [
        _sse({"choices": [{"index": 0, "delta": {"content": "Let me search."}}]}),
        _sse({"choices": [{"index": 0, "delta": {"tool_calls": [
            {"index": 0, "id": "call_a", "function": {"name": "web_search", "arguments": "{\"query\": "}}
        ]}}]}),
        _sse({"choices": [{"index": 0, "delta": {"tool_calls": [
            {"index": 0, "function": {"arguments": "\"python 3.13\"}"}}
        ]}, "finish_reason": "tool_calls"}]}),
        "data: [DONE]",
    ]
    calls = []
    _install_client(monkeypatch, FakeResponse(lines), calls)
    search = ToolDef(
        name="web_search",
        description="Search the web",
        params={"query": ToolParam(name="query", description="terms", required=True, schema={"type": "string"})},
    )
    host = ChatCompletionsHost(SettingsStub())
    parts = list(host.send_request("gpt-4o", [ChatMessage(role="user", content="hi")], [search], CancellationTokenSource().token))
    assert parts == [
        TextPart("Let me search."),
        ToolCall(id="call_a", name="web_search", arguments={"query": "python 3.13"}),
    ]
    url, kw = calls[0]
    assert url == "https://models.example.test/inference/chat/completions"
    assert kw["headers"]["Authorization"] == "Bearer ghp-token-123456"
    payload = kw["json"]
    assert payload["stream"] is True
    assert payload["tool_choice"] == "auto"
    fn = payload["tools"][0]["function"]
    assert fn["parameters"]["required"] == ["query"]
    assert fn["parameters"]["properties"]["query"]["description"] == "terms"


def test_tool_messages_serialized(monkeypatch):
    calls = []
    _install_client(monkeypatch, FakeResponse(["data: [DONE]"]), calls)
    call = ToolCall(id="call_a", name="lookup", arguments={"q": "x"})
    messages = [
        ChatMessage(role="assistant", content="", tool_calls=[call]),
        ChatMessage(role="tool", content="Error: boom", tool_call_id="call_a"),
    ]
    list(ChatCompletionsHost(SettingsStub()).send_request("gpt-4o", messages, None, CancellationTokenSource().token))
    sent = calls[0][1]["json"]
    assert "tools" not in sent
    assert "content" not in sent["messages"][0]
    assert sent["messages"][0]["tool_calls"][0]["function"]["arguments"] == "{\"q\": \"x\"}"
    assert sent["messages"][1] == {"role": "tool", "content": "Error: boom", "tool_call_id": "call_a"}


def test_error_status_maps_to_language_model_error(monkeypatch):
    body = json.dumps({"error": {"message": "token expired"}})
    _install_client(monkeypatch, FakeResponse([], status_code=401, body=body), [])
    with pytest.raises(LanguageModelError) as exc:
        list(ChatCompletionsHost(SettingsStub()).send_request("gpt-4o", [], None, CancellationTokenSource().token))
    assert exc.value.code == "NoPermissions"
    assert exc.value.message == "token expired"


def test_availability_and_model_catalog():
    class NoKey(SettingsStub):
        copilot_api_key = None

    host = ChatCompletionsHost(NoKey())
    assert host.is_available() is False
    with pytest.raises(ValidationError):
        list(host.send_request("gpt-4o", [], None, CancellationTokenSource().token))
    models = ChatCompletionsHost(SettingsStub()).select_chat_models(ModelSelector(vendor="copilot", family="gpt-4o"))
    assert [m.id for m in models] == ["openai/gpt-4o"]


def test_invoke_tool_uses_registry():
    host = ChatCompletionsHost(SettingsStub())
    host.registry.register(ToolDef(name="echo", description=""), lambda args: args["v"])
    assert [t.name for t in host.tools] == ["echo"]
    assert host.invoke_tool("echo", {"v": "ok"}, CancellationTokenSource().token) == "ok"


class StallingResponse(FakeResponse):
    def __init__(self, lines):
        super().__init__(lines)
        self.closed = threading.Event()

    def close(self):
        self.closed.set()

    def iter_lines(self):
        yield from self._lines
        if self.closed.wait(2):
            raise httpx.RemoteProtocolError("peer closed connection")


def test_cancel_mid_stream_aborts_read_and_drops_pending_tool_calls(monkeypatch):
    response = StallingResponse(
        [
            _sse({"choices": [{"index": 0, "delta": {"content": "Searching"}}]}),
            _sse({"choices": [{"index": 0, "delta": {"tool_calls": [
                {"index": 0, "id": "call_a", "function": {"name": "web_search", "arguments": "{}"}}
            ]}}]}),
        ]
    )
    _install_client(monkeypatch, response, [])
    source = CancellationTokenSource()
    timer = threading.Timer(0.1, source.cancel)
    parts = []
    start = time.monotonic()
    timer.start()
    try:
        with pytest.raises(RequestCancelledError):
            for part in ChatCompletionsHost(SettingsStub()).send_request(
                "gpt-4o", [ChatMessage(role="user", content="hi")], None, source.token
            ):
                parts.append(part)
    finally:
        timer.cancel()
    assert time.monotonic() - start < 1.0
    assert parts == [TextPart("Searching")]
    assert response.closed.is_set()


def test_stream_ending_after_cancel_is_still_cancelled(monkeypatch):
    class ClosingResponse(FakeResponse):
        def close(self):
            self._lines.clear()

        def iter_lines(self):
            while self._lines:
                yield self._lines.pop(0)

    response = ClosingResponse([_sse({"choices": [{"index": 0, "delta": {"content": "a"}}]})] * 3)
    _install_client(monkeypatch, response, [])
    source = CancellationTokenSource()
    stream = ChatCompletionsHost(SettingsStub()).send_request(
        "gpt-4o", [ChatMessage(role="user", content="hi")], None, source.token
    )
    assert next(stream) == TextPart("a")
    source.cancel()
    with pytest.raises(RequestCancelledError):
        next(stream)
