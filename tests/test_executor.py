import pytest

from compat_gateway.config import DeveloperPromptMode
from compat_gateway.engine.client import EngineError
from compat_gateway.engine.config import EngineConfigLoader, parse_reasoning_variant, reasoning_variants
from compat_gateway.engine.types import Completed, Message, OutputTextDelta, WebSearchTool
from compat_gateway.errors import BadRequestError, InternalError
from compat_gateway.message_processor import MessageProcessor
from compat_gateway.prompt import PROMPT_MARKER
from compat_gateway.schemas import ChatCompletionRequest
from compat_gateway.services.executor import MockChatExecutor, RealChatExecutor


class FakeEngine:
    """Records every execute call and replays a fixed event script."""

    def __init__(self, events=None, error=None):
        self.events = events or [OutputTextDelta("pong"), Completed(response_id="resp_fake")]
        self.error = error
        self.calls = []

    async def execute(self, config, prompt):
        self.calls.append((config, prompt))
        if self.error is not None:
            raise self.error

        async def stream():
            for event in self.events:
                yield event

        return stream()


class CountingLoader(EngineConfigLoader):
    def __init__(self, settings):
        super().__init__(settings)
        self.loads = []

    async def load(self, model):
        self.loads.append(model)
        return await super().load(model)


def _payload(model="", messages=None, **body):
    request = ChatCompletionRequest.model_validate({
        "model": model,
        "messages": messages or [{"role": "user", "content": "hello world"}],
        **body,
    })
    return MessageProcessor(default_model="gpt-5").normalize(request)


async def test_mock_complete_echoes_first_user_message():
    body = await MockChatExecutor().complete(_payload())

    assert body["id"] == "resp_stub"
    assert body["model"] == "gpt-5"
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "Hi there! You said: hello world"}
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["usage"]["total_tokens"] == 0


async def test_mock_complete_without_user_message():
    body = await MockChatExecutor().complete(_payload(messages=[{"role": "system", "content": "sys"}]))
    assert body["choices"][0]["message"]["content"] == "Hi there! How can I help you today?"


async def test_mock_stream_is_unavailable():
    with pytest.raises(BadRequestError) as excinfo:
        await MockChatExecutor().stream(_payload())
    assert excinfo.value.message == "Streaming is not available in test mode"


async def test_real_complete_aggregates_engine_stream(settings):
    engine = FakeEngine()
    executor = RealChatExecutor(EngineConfigLoader(settings), engine, settings)

    body = await executor.complete(_payload())

    assert body["id"] == "resp_fake"
    assert body["choices"][0]["message"]["content"] == "pong"
    config, prompt = engine.calls[0]
    assert config.model == "gpt-5"
    first = prompt.input[0]
    assert isinstance(first, Message) and first.role == "developer"
    assert PROMPT_MARKER in first.content[0].text


async def test_real_stream_applies_web_search_and_prompt_mode(settings):
    settings = settings.model_copy(update={
        "WEB_SEARCH_REQUEST": True,
        "DEVELOPER_PROMPT_MODE": DeveloperPromptMode.DISABLED,
    })
    engine = FakeEngine()
    executor = RealChatExecutor(EngineConfigLoader(settings), engine, settings)

    handle = await executor.stream(_payload(model="gpt-5-codex"))

    assert handle.response_model == "gpt-5-codex"
    _, prompt = engine.calls[0]
    assert any(isinstance(tool, WebSearchTool) for tool in prompt.tools)
    assert all(item.role != "developer" for item in prompt.input if isinstance(item, Message))


async def test_unknown_model_is_bad_request_with_guidance(settings):
    executor = RealChatExecutor(EngineConfigLoader(settings), FakeEngine(), settings)

    with pytest.raises(BadRequestError) as excinfo:
        await executor.complete(_payload(model="llama-3"))
    assert "llama-3" in excinfo.value.message
    assert "ENGINE_MODELS" in excinfo.value.message


async def test_config_cache_loads_once_per_model(settings):
    loader = CountingLoader(settings)
    executor = RealChatExecutor(loader, FakeEngine(), settings)

    first = await executor.config_for_model("gpt-5-high")
    second = await executor.config_for_model("gpt-5-high")
    base = await executor.config_for_model("gpt-5")

    assert first is second
    assert first.model == "gpt-5"
    assert first.reasoning_effort == "high"
    assert base is loader.base_config
    assert loader.loads == ["gpt-5-high"]


async def test_engine_failure_is_internal_with_generic_message(settings):
    engine = FakeEngine(error=EngineError("connection refused to secret-host:443"))
    executor = RealChatExecutor(EngineConfigLoader(settings), engine, settings)

    with pytest.raises(InternalError) as excinfo:
        await executor.stream(_payload())
    assert excinfo.value.message == "Upstream model request failed"
    assert "secret-host" not in excinfo.value.message


def test_reasoning_variant_parsing():
    assert parse_reasoning_variant("gpt-5-high") == ("gpt-5", "high")
    assert parse_reasoning_variant("gpt-5.1-codex-MINIMAL") == ("gpt-5.1-codex", "minimal")
    assert parse_reasoning_variant("gpt-5-codex") is None
    assert parse_reasoning_variant("-high") is None
    assert reasoning_variants("gpt-5") == ["gpt-5-low", "gpt-5-medium", "gpt-5-high"]
