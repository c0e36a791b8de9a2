"""Service layer orchestrating OpenAI-compatible chat completions."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, Set, Tuple

from ..helpers import (
    bind_request_context,
    debug_log,
    request_stage_log,
    reset_request_context,
    verbose_log,
)
from ..message_processor import MessageProcessor, PromptPayload
from ..schemas import ChatCompletionRequest
from ..state import AppState
from .stream_aggregator import IncrementChannel, pump_increments

REQUEST_CONTEXT_KEYS = ("request_model", "mode")


class ChatCompletionService:
    """Encapsulate chat completion workflow independent of FastAPI layer."""

    def __init__(self, state: AppState) -> None:
        self.state = state
        self.verbose = state.settings.VERBOSE
        self.processor = MessageProcessor(
            default_model=state.settings.DEFAULT_MODEL,
            verbose=self.verbose,
        )
        # producer tasks stay referenced until they finish
        self._background_tasks: Set[asyncio.Task] = set()

    def prepare_request(self, request: ChatCompletionRequest) -> PromptPayload:
        self.state.ensure_authenticated()
        verbose_log(self.verbose, "chat.request", request.model_dump(by_alias=True, exclude_none=True))

        payload = self.processor.normalize(request)
        bind_request_context(request_model=payload.model)
        request_stage_log(
            "normalized",
            "Request normalized",
            items=len(payload.prompt.input),
            tools=len(payload.prompt.tools),
        )
        return payload

    async def handle_non_stream_request(self, payload: PromptPayload) -> Dict[str, Any]:
        bind_request_context(mode="non_stream")
        request_stage_log("non_stream_pipeline", "Forwarding chat request to the engine")
        response = await self.state.executor.complete(payload)
        verbose_log(self.verbose, "chat.response", response)
        request_stage_log("non_stream_ready", "Completion ready")
        return response

    async def stream_response(self, payload: PromptPayload) -> Tuple[AsyncIterator[str], IncrementChannel]:
        """Open the engine stream and return the SSE line iterator with its channel.

        Errors raised before the stream opens propagate to the caller; later
        failures end the stream with an error chunk. The caller must hand the
        channel to ``release_stream`` once the response is over, whether or not
        the iterator was ever consumed.
        """
        bind_request_context(mode="stream")
        request_stage_log("stream_pipeline", "Forwarding streaming chat request to the engine")
        handle = await self.state.executor.stream(payload)

        channel = IncrementChannel()
        task = asyncio.create_task(pump_increments(handle, channel, self.verbose))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return self._drain(channel), channel

    async def _drain(self, channel: IncrementChannel) -> AsyncIterator[str]:
        try:
            request_stage_log("stream_dispatch", "Pushing stream increments")
            async for line in channel:
                yield line
            request_stage_log("stream_completed", "Stream finished")
        finally:
            channel.close()
            request_stage_log("stream_cleanup", "Stream context released")
            reset_request_context(*REQUEST_CONTEXT_KEYS)

    def release_stream(self, channel: IncrementChannel) -> None:
        """Stop the producer once the response is over or the client went away."""
        if not channel.closed:
            debug_log("[STREAM] releasing stream channel")
        channel.close()
