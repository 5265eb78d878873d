# tests/unit/test_openai_adapter.py

from __future__ import annotations
import io
import json
import sys
from pathlib import Path
import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmchat.core.errors import ProviderAPIError, ProviderDecodeError
from llmchat.core.ports import ProviderConfig
from llmchat.core.wire import ImageURL, Message, Text
from llmchat.providers.openai_adapter import OpenAIClient, with_system_prompt


def make_client(handler, out=None) -> OpenAIClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    cfg = ProviderConfig(base_url="https://api.test/", api_key="sk-test", model="gpt-4-turbo")
    return OpenAIClient(cfg, http_client=http, out=out or io.StringIO())


def test_read_body_hello_until_done():
    out = io.StringIO()
    client = make_client(lambda r: httpx.Response(200), out)
    lines = [
        'data: {"choices":[{"index":0,"delta":{"content":"Hel"}}]}',
        'data: {"choices":[{"index":0,"delta":{"content":"lo"}}]}',
        "data: [DONE]",
    ]
    assert client.read_body(lines) == "Hello"
    assert out.getvalue() == "Hello\n"


def test_done_sentinel_stops_scan_without_decoding():
    client = make_client(lambda r: httpx.Response(200))
    lines = [
        'data: {"choices":[{"index":0,"delta":{"content":"ok"}}]}',
        "data: [DONE]",
        "data: this is not json and must never be read",
    ]
    assert client.read_body(lines) == "ok"


def test_choices_appended_in_array_order_and_null_content_skipped():
    client = make_client(lambda r: httpx.Response(200))
    lines = [
        'data: {"choices":[{"index":0,"delta":{"role":"assistant","content":null}}]}',
        'data: {"choices":[{"index":0,"delta":{"content":"a"}},{"index":1,"delta":{"content":"b"}}]}',
        "",
        'data: {"choices":[{"index":0,"delta":{}}]}',
        "data: [DONE]",
    ]
    assert client.read_body(lines) == "ab"


def test_malformed_chunk_is_decode_error():
    client = make_client(lambda r: httpx.Response(200))
    with pytest.raises(ProviderDecodeError):
        client.read_body(['data: {"choices": ['])


def test_in_stream_error_object_is_api_error():
    client = make_client(lambda r: httpx.Response(200))
    with pytest.raises(ProviderAPIError) as ei:
        client.read_body(['data: {"error": {"message": "rate limited", "type": "rate_limit_error"}}'])
    assert ei.value.error_type == "rate_limit_error"


def test_system_prompt_is_appended_last_not_first():
    # Observed behaviour kept as-is: the system message goes at the END.
    transcript = [Message.text("user", "hi"), Message.text("assistant", "hello")]
    out = with_system_prompt(transcript, "be terse")
    assert [m.role for m in out] == ["user", "assistant", "system"]
    assert len(transcript) == 2  # caller's list untouched
    assert with_system_prompt(transcript, "") == transcript


def test_send_message_request_body_has_trailing_system_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, text='data: {"choices":[{"index":0,"delta":{"content":"x"}}]}\n\ndata: [DONE]\n\n')

    client = make_client(handler)
    transcript = [
        Message("user", [Text("What's in this image?"), ImageURL("https://example.com/cat.jpg")]),
        Message.text("assistant", "A cat."),
    ]
    with client.send_message(transcript, "sys prompt") as rsp:
        assert client.read_body(rsp.body) == "x"

    req = seen["request"]
    assert str(req.url) == "https://api.test/v1/chat/completions"
    assert req.headers["authorization"] == "Bearer sk-test"
    assert req.headers["content-type"] == "application/json"
    body = json.loads(req.content)
    assert body["model"] == "gpt-4-turbo"
    assert body["stream"] is True
    assert len(body["messages"]) == 3
    assert body["messages"][-1] == {"role": "system", "content": [{"type": "text", "text": "sys prompt"}]}
    assert body["messages"][0]["content"][1] == {"type": "image_url", "image_url": {"url": "https://example.com/cat.jpg"}}


def test_non_2xx_status_raises_api_error():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Incorrect API key provided", "type": "invalid_request_error", "code": "invalid_api_key"}})

    client = make_client(handler)
    with pytest.raises(ProviderAPIError) as ei:
        client.send_message([Message.text("user", "hi")], "")
    assert ei.value.status_code == 401
    assert "Incorrect API key" in str(ei.value)


def test_image_delivery_is_url():
    assert OpenAIClient.image_delivery == "url"
