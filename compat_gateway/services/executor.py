"""Chat executors: the canned test variant and the engine-backed production variant."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Protocol

from ..config import Settings
from ..engine.client import EngineError, ResponsesEngine
from ..engine.config import EngineConfig, EngineConfigLoader, ModelNotConfigured
from ..engine.types import Usage, prompt_debug_snapshot
from ..errors import BadRequestError, InternalError
from ..helpers import debug_log, error_log, request_stage_log
from ..message_processor import PromptPayload
from ..prompt import ensure_web_search_tool, inject_developer_prompt
from .chunk_builder import chunk_builder
from .stream_aggregator import StreamingHandle, aggregate_response_stream

STUB_RESPONSE_ID = "resp_stub"


class ChatExecutor(Protocol):
    """Runs a normalized prompt to completion or as a stream."""

    async def complete(self, payload: PromptPayload) -> Dict[str, Any]:
        ...

    async def stream(self, payload: PromptPayload) -> StreamingHandle:
        ...


class MockChatExecutor:
    """In-memory executor that never talks to the engine."""

    async def complete(self, payload: PromptPayload) -> Dict[str, Any]:
        first = (payload.first_user_message or "").strip()
        reply = f"Hi there! You said: {first}" if first else "Hi there! How can I help you today?"
        return chunk_builder.build_completion(
            response_id=STUB_RESPONSE_ID,
            model=payload.model,
            content=reply,
            tool_calls=[],
            finish_reason="stop",
            usage=Usage(),
        )

    async def stream(self, payload: PromptPayload) -> StreamingHandle:
        raise BadRequestError("Streaming is not available in test mode")


class RealChatExecutor:
    """
    Executor backed by the Responses engine.

    Engine configurations are cached per model. Lookups read the cache
    without locking; a miss loads outside the lock and only the store is
    serialized, so concurrent misses for one model may each load.
    """

    def __init__(self, config_loader: EngineConfigLoader, engine: ResponsesEngine, settings: Settings):
        self._loader = config_loader
        self._engine = engine
        self._prompt_mode = settings.DEVELOPER_PROMPT_MODE
        self._config_cache: Dict[str, EngineConfig] = {}
        self._cache_lock = asyncio.Lock()

    async def config_for_model(self, requested: str) -> EngineConfig:
        requested = requested.strip()
        if not requested:
            raise BadRequestError("model must be provided")

        base = self._loader.base_config
        if requested == base.model:
            return base

        cached = self._config_cache.get(requested)
        if cached is not None:
            return cached

        try:
            config = await self._loader.load(requested)
        except ModelNotConfigured:
            raise BadRequestError(
                f"model `{requested}` is not configured for this gateway. "
                f"Add it to ENGINE_MODELS to enable it."
            )

        async with self._cache_lock:
            self._config_cache[requested] = config
        debug_log("[EXECUTOR] cached engine config", model=requested, engine_model=config.model)
        return config

    async def complete(self, payload: PromptPayload) -> Dict[str, Any]:
        handle = await self.stream(payload)
        return await aggregate_response_stream(handle)

    async def stream(self, payload: PromptPayload) -> StreamingHandle:
        config = await self.config_for_model(payload.model)

        prompt = payload.prompt
        has_web_search = ensure_web_search_tool(prompt, config.tools_web_search_request)
        inject_developer_prompt(prompt, has_web_search, payload.system_prompt, self._prompt_mode)
        request_stage_log(
            "augmented",
            "Prompt augmented",
            items=len(prompt.input),
            tools=len(prompt.tools),
            web_search=has_web_search,
        )

        try:
            stream = await self._engine.execute(config, prompt)
        except EngineError as exc:
            error_log(
                "[EXECUTOR] engine request failed",
                model=config.model,
                prompt=prompt_debug_snapshot(prompt),
                error=str(exc),
            )
            raise InternalError("Upstream model request failed") from exc

        return StreamingHandle(response_model=payload.model, stream=stream)
