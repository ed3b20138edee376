# -*- coding: utf-8 -*-
"""
流式传输测试 (httpx.MockTransport 模拟服务端)
"""

import json

import httpx
import pytest

from diagnostics import EventKind
from errors import ApiError, InvalidEndpoint, NetworkError
from llm.client import StreamingTransport, describe_payload, extract_error_message
from llm.prompt_builder import ChatRequestBuilder
from llm.schemas import InteractionMode


def sse_body(*contents, done=True) -> bytes:
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": c}}]})
        for c in contents
    ]
    if done:
        lines.append("data: [DONE]")
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def request_obj(frame):
    builder = ChatRequestBuilder(model="test-model", temperature=0.7)
    return builder.build(InteractionMode.FIRST_STEP, "open Mail", frame)


def make_transport(handler, events, api_base="https://api.example.com/v1"):
    return StreamingTransport(
        api_base=api_base,
        transport=httpx.MockTransport(handler),
        events=events,
    )


async def collect(transport, request, api_key="sk-test"):
    return [chunk async for chunk in transport.send(request, api_key)]


@pytest.mark.asyncio
async def test_stream_yields_chunks_in_order(request_obj, events):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=sse_body("Click ", "the ", "Mail icon."))

    transport = make_transport(handler, events)
    chunks = await collect(transport, request_obj)

    assert chunks == ["Click ", "the ", "Mail icon."]
    assert seen["url"] == "https://api.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["stream"] is True
    assert body["temperature"] == 0.7
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    user_content = body["messages"][1]["content"]
    assert user_content[0]["type"] == "text"
    assert user_content[1]["type"] == "image_url"
    assert user_content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    kinds = [e.kind for e in events.recorded]
    assert kinds == [EventKind.REQUEST, EventKind.RESPONSE]
    assert events.recorded[1].details["chunks_count"] == "3"


@pytest.mark.asyncio
async def test_malformed_lines_do_not_abort_stream(request_obj, events):
    body = b"\n".join([
        b'data: {"choices": [{"delta": {"content": "one"}}]}',
        b"data: {oops",
        b'data: {"choices": [{"delta": {"content": "two"}}]}',
        b"data: [DONE]",
    ])

    transport = make_transport(lambda request: httpx.Response(200, content=body), events)
    assert await collect(transport, request_obj) == ["one", "two"]


@pytest.mark.asyncio
async def test_chunks_split_across_network_reads(request_obj, events):
    payload = sse_body("split ", "across ", "reads")

    async def fragments():
        for i in range(0, len(payload), 11):
            yield payload[i:i + 11]

    transport = make_transport(lambda request: httpx.Response(200, content=fragments()), events)
    assert await collect(transport, request_obj) == ["split ", "across ", "reads"]


@pytest.mark.asyncio
async def test_error_message_from_json_body(request_obj, events):
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "boom", "type": "invalid_request_error"}})

    transport = make_transport(handler, events)
    with pytest.raises(ApiError) as exc_info:
        await collect(transport, request_obj)

    assert "boom" in str(exc_info.value)
    assert exc_info.value.status_code == 401
    assert events.recorded[-1].kind is EventKind.ERROR


@pytest.mark.asyncio
async def test_error_without_json_reports_status(request_obj, events):
    transport = make_transport(lambda request: httpx.Response(502, content=b"<html>bad gateway</html>"), events)
    chunks = []
    with pytest.raises(ApiError) as exc_info:
        async for chunk in transport.send(request_obj, "sk-test"):
            chunks.append(chunk)

    assert chunks == []
    assert "502" in str(exc_info.value)
    assert str(exc_info.value) == "HTTP Error: 502"


@pytest.mark.asyncio
async def test_network_error_is_wrapped(request_obj, events):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = make_transport(handler, events)
    with pytest.raises(NetworkError) as exc_info:
        await collect(transport, request_obj)

    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert events.recorded[-1].message == "Network Error"


@pytest.mark.asyncio
async def test_empty_stream_completes_with_soft_warning(request_obj, events):
    transport = make_transport(lambda request: httpx.Response(200, content=b"data: [DONE]\n"), events)

    assert await collect(transport, request_obj) == []
    last = events.recorded[-1]
    assert last.kind is EventKind.ERROR
    assert last.message == "No Content Processed"


@pytest.mark.asyncio
async def test_invalid_endpoint_fails_before_request(request_obj, events):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    transport = make_transport(handler, events, api_base="not a url")
    with pytest.raises(InvalidEndpoint):
        await collect(transport, request_obj)
    assert calls == []


@pytest.mark.asyncio
async def test_complete_collects_full_text(request_obj, events):
    transport = make_transport(lambda request: httpx.Response(200, content=sse_body("a", "b", "c")), events)
    assert await transport.complete(request_obj, "sk-test") == "abc"


def test_extract_error_message_variants():
    assert extract_error_message(b'{"error": {"message": "quota"}}') == "quota"
    assert extract_error_message(b'{"error": "flat"}') is None
    assert extract_error_message(b"not json") is None
    assert extract_error_message(b"[]") is None


def test_describe_payload_reports_image_size(request_obj):
    payload = request_obj.to_payload()
    details = describe_payload(payload, 1234)
    assert details["body_size"] == "1234 bytes"
    assert details["message_count"] == 2
    assert details["message_0_role"] == "system"
    assert details["message_1_content_0_type"] == "text"
    assert details["message_1_content_1_type"] == "image_url"
    assert details["message_1_content_1_image_size"].endswith("chars")


@pytest.mark.asyncio
async def test_carriage_return_delimited_stream(request_obj, events):
    lines = sse_body("a", "b").decode("utf-8").splitlines()
    body = ("\r".join(lines) + "\r").encode("utf-8")

    transport = make_transport(lambda request: httpx.Response(200, content=body), events)
    assert await collect(transport, request_obj) == ["a", "b"]
    assert events.recorded[-1].details["malformed_lines"] == "0"


@pytest.mark.asyncio
async def test_crlf_delimited_stream(request_obj, events):
    body = sse_body("x", "y").replace(b"\n", b"\r\n")
    transport = make_transport(lambda request: httpx.Response(200, content=body), events)
    assert await collect(transport, request_obj) == ["x", "y"]


@pytest.mark.asyncio
async def test_empty_error_message_falls_back_to_status(request_obj, events):
    transport = make_transport(lambda request: httpx.Response(500, json={"error": {"message": ""}}), events)
    with pytest.raises(ApiError) as exc_info:
        await collect(transport, request_obj)
    assert str(exc_info.value) == "HTTP Error: 500"


def test_extract_error_message_ignores_blank_message():
    assert extract_error_message(b'{"error": {"message": ""}}') is None
    assert extract_error_message(b'{"error": {"message": "   "}}') is None
