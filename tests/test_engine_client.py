import httpx
import orjson
import pytest

from compat_gateway.engine.auth import AuthManager
from compat_gateway.engine.client import EngineError, ResponsesEngine, parse_event
from compat_gateway.engine.config import EngineConfig
from compat_gateway.engine.types import (
    Completed,
    Created,
    FunctionCall,
    InputText,
    Message,
    OutputItemDone,
    OutputTextDelta,
    Prompt,
    RateLimits,
    ReasoningSummaryDelta,
    StreamError,
    WebSearchTool,
)
from compat_gateway.services.network_manager import NetworkManager
from compat_gateway.services.stream_aggregator import IncrementChannel, StreamingHandle, pump_increments


def _sse(*payloads):
    lines = []
    for payload in payloads:
        lines.append(b"data: " + orjson.dumps(payload) + b"\n\n")
    return b"".join(lines)


def _engine(handler, api_key="sk-test"):
    network = NetworkManager(transport=httpx.MockTransport(handler))
    return ResponsesEngine(network, AuthManager(api_key=api_key)), network


def _config(**overrides):
    values = {"model": "gpt-5", "base_url": "http://engine.test/v1"}
    values.update(overrides)
    return EngineConfig(**values)


def _prompt():
    return Prompt(input=[Message(role="user", content=[InputText(text="hello")])])


async def _drain(stream):
    return [event async for event in stream]


async def test_execute_streams_parsed_events():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = orjson.loads(request.content)
        body = _sse(
            {"type": "response.created", "response": {"id": "resp_1"}},
            {"type": "response.in_progress"},
            {"type": "response.output_text.delta", "delta": "Hi"},
            {"type": "response.output_item.done", "item": {
                "type": "function_call", "name": "lookup", "arguments": "{}", "call_id": "call_1", "id": "fc_1",
            }},
            {"type": "response.completed", "response": {
                "id": "resp_1",
                "usage": {"input_tokens": 4, "output_tokens": 2, "total_tokens": 6,
                          "input_tokens_details": {"cached_tokens": 1},
                          "output_tokens_details": {"reasoning_tokens": 1}},
            }},
        )
        return httpx.Response(200, content=body, headers={
            "content-type": "text/event-stream",
            "x-ratelimit-remaining-requests": "99",
        })

    engine, network = _engine(handler)
    events = await _drain(await engine.execute(_config(), _prompt()))
    await network.cleanup_clients()

    assert seen["url"] == "http://engine.test/v1/responses"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-5"
    assert seen["body"]["stream"] is True
    assert seen["body"]["store"] is False
    assert seen["body"]["input"] == [
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "hello"}]},
    ]

    assert events[0] == RateLimits(snapshot={"remaining-requests": "99"})
    assert events[1] == Created()
    assert events[2] == OutputTextDelta("Hi")
    assert events[3] == OutputItemDone(FunctionCall(name="lookup", arguments="{}", call_id="call_1", id="fc_1"))
    completed = events[4]
    assert isinstance(completed, Completed)
    assert completed.response_id == "resp_1"
    assert completed.token_usage.cached_input_tokens == 1
    assert completed.token_usage.reasoning_output_tokens == 1
    assert len(events) == 5


async def test_non_200_raises_engine_error():
    engine, _ = _engine(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))

    with pytest.raises(EngineError) as excinfo:
        await engine.execute(_config(), _prompt())
    assert excinfo.value.status_code == 401


async def test_missing_credentials_raise_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    engine, _ = _engine(handler, api_key="")
    with pytest.raises(EngineError):
        await engine.execute(_config(), _prompt())


async def test_stream_without_completed_ends_with_error():
    body = _sse({"type": "response.output_text.delta", "delta": "partial"})
    engine, _ = _engine(lambda request: httpx.Response(200, content=body))

    events = await _drain(await engine.execute(_config(), _prompt()))

    assert events == [OutputTextDelta("partial"), StreamError("stream closed before response.completed")]


async def test_failed_response_becomes_stream_error():
    body = _sse(
        {"type": "response.failed", "response": {"error": {"message": "quota exceeded"}}},
        {"type": "response.output_text.delta", "delta": "never"},
    )
    engine, _ = _engine(lambda request: httpx.Response(200, content=body))

    events = await _drain(await engine.execute(_config(), _prompt()))
    assert events == [StreamError("quota exceeded")]


def test_parse_event_reasoning_and_unknown():
    assert parse_event({"type": "response.reasoning_summary_text.delta", "delta": "x", "summary_index": 2}) == \
        ReasoningSummaryDelta("x", summary_index=2)
    assert parse_event({"type": "response.content_part.added"}) is None
    assert parse_event({"type": "error", "message": "nope"}) == StreamError("nope")


def test_request_body_reasoning_instructions_and_tools():
    prompt = _prompt()
    prompt.tools.append(WebSearchTool())
    config = _config(reasoning_effort="high", reasoning_summary="auto", instructions="Be helpful")

    body = ResponsesEngine.build_request_body(config, prompt)

    assert body["reasoning"] == {"effort": "high", "summary": "auto"}
    assert body["instructions"] == "Be helpful"
    assert body["tools"] == [{"type": "web_search"}]
    assert body["tool_choice"] == "auto"
    assert body["parallel_tool_calls"] is False


def test_request_body_without_reasoning_or_instructions():
    body = ResponsesEngine.build_request_body(_config(), _prompt())
    assert "reasoning" not in body
    assert "instructions" not in body


def test_endpoint_url_tolerates_trailing_slash():
    assert ResponsesEngine.endpoint_url(_config(base_url="http://engine.test/v1/")) == "http://engine.test/v1/responses"


def test_auth_manager_reads_credential_file(tmp_path):
    auth_file = tmp_path / "auth.json"
    auth_file.write_bytes(orjson.dumps({"OPENAI_API_KEY": " sk-file "}))

    assert AuthManager(auth_file=str(auth_file)).api_key() == "sk-file"
    assert AuthManager(api_key="sk-env", auth_file=str(auth_file)).api_key() == "sk-env"


def test_auth_manager_without_credentials(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")

    assert AuthManager(auth_file=str(tmp_path / "missing.json")).is_authenticated() is False
    assert AuthManager(auth_file=str(broken)).is_authenticated() is False
    assert AuthManager().is_authenticated() is False


def test_failed_response_with_plain_string_error():
    assert parse_event({"type": "response.failed", "response": {"error": "quota exceeded"}}) == \
        StreamError("quota exceeded")
    assert parse_event({"type": "response.failed", "response": "boom"}) == StreamError("response failed")
    assert parse_event({"type": "response.completed", "response": None}) == Completed(response_id="")


async def test_unusable_index_ends_stream_with_error():
    body = _sse(
        {"type": "response.reasoning_summary_text.delta", "delta": "x", "summary_index": "first"},
        {"type": "response.completed", "response": {"id": "resp_1"}},
    )
    engine, _ = _engine(lambda request: httpx.Response(200, content=body))

    events = await _drain(await engine.execute(_config(), _prompt()))

    assert len(events) == 1
    assert isinstance(events[0], StreamError)


async def test_malformed_failure_still_streams_error_increment():
    body = _sse(
        {"type": "response.output_text.delta", "delta": "partial"},
        {"type": "response.failed", "response": {"error": "quota exceeded"}},
    )
    engine, network = _engine(lambda request: httpx.Response(200, content=body))
    handle = StreamingHandle(response_model="gpt-5", stream=await engine.execute(_config(), _prompt()))
    channel = IncrementChannel()

    await pump_increments(handle, channel)
    lines = [line async for line in channel]
    await network.cleanup_clients()

    assert lines[-1] == "data: [DONE]\n\n"
    chunks = [orjson.loads(line[len("data: "):]) for line in lines[:-1]]
    assert chunks[0]["choices"][0]["delta"]["content"] == "partial"
    assert chunks[-1]["choices"][0]["finish_reason"] == "error"
