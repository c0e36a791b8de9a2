"""
Turns an engine event stream into chat completion output

Two consumers of the same event sequence:
- ``aggregate_response_stream`` folds the whole stream into one ``chat.completion`` body
- ``iter_stream_increments`` yields ``chat.completion.chunk`` objects as events arrive

``IncrementChannel`` hands increments from the producing task to the SSE response.
"""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import orjson
from fastuuid import uuid4

from ..engine.types import (
    Completed,
    Created,
    CustomToolCall,
    FunctionCall,
    Message,
    OutputItemAdded,
    OutputItemDone,
    OutputTextDelta,
    RateLimits,
    Reasoning,
    ReasoningContentDelta,
    ReasoningSummaryDelta,
    ReasoningSummaryPartAdded,
    ResponseEvent,
    ResponseItem,
    StreamError,
    Usage,
    WebSearchAction,
    WebSearchCall,
    content_items_to_text,
)
from ..errors import InternalError
from ..helpers import error_log, verbose_log, warning_log
from ..schemas import ToolCall, ToolCallFunction
from .chunk_builder import DONE_LINE, chunk_builder, current_timestamp

AGGREGATE_RESPONSE_ID = "resp_local"
STREAM_RESPONSE_ID = "resp_stream"
CHANNEL_CAPACITY = 32


@dataclass
class StreamingHandle:
    """An open engine stream plus the model name reported back to the client."""

    response_model: str
    stream: AsyncIterator[ResponseEvent]


def web_search_arguments(action: WebSearchAction) -> str:
    payload: Dict[str, Any] = {}
    if action.type == "search":
        payload = {"type": "search"}
        if action.query is not None:
            payload["query"] = action.query
    elif action.type == "open_page":
        payload = {"type": "open_page"}
        if action.url is not None:
            payload["url"] = action.url
    elif action.type == "find_in_page":
        payload = {"type": "find_in_page"}
        if action.url is not None:
            payload["url"] = action.url
        if action.pattern is not None:
            payload["pattern"] = action.pattern
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def tool_call_from_item(item: ResponseItem) -> Optional[ToolCall]:
    """Tool call record for a call-like output item, ``None`` for anything else."""
    if isinstance(item, FunctionCall):
        return ToolCall(id=item.call_id, function=ToolCallFunction(name=item.name, arguments=item.arguments))
    if isinstance(item, CustomToolCall):
        return ToolCall(id=item.call_id, function=ToolCallFunction(name=item.name, arguments=item.input))
    if isinstance(item, WebSearchCall):
        call_id = item.id or f"ws_call_{uuid4()}"
        return ToolCall(
            id=call_id,
            function=ToolCallFunction(name="web_search", arguments=web_search_arguments(item.action)),
        )
    return None


def _assistant_text(item: ResponseItem) -> Optional[str]:
    if isinstance(item, Message) and item.role == "assistant":
        return content_items_to_text(item.content)
    return None


def _finish_reason(tool_calls: List[ToolCall]) -> str:
    return "tool_calls" if tool_calls else "stop"


async def aggregate_response_stream(handle: StreamingHandle) -> Dict[str, Any]:
    """Drain the stream into a single ``chat.completion`` body."""
    streamed_text = ""
    final_text: Optional[str] = None
    response_id: Optional[str] = None
    usage = Usage()
    tool_calls: List[ToolCall] = []
    tool_call_indices: Dict[str, int] = {}
    summary_parts: Dict[int, str] = {}

    async with aclosing(handle.stream) as events:
        async for event in events:
            if isinstance(event, OutputTextDelta):
                streamed_text += event.delta
            elif isinstance(event, (OutputItemAdded, OutputItemDone)):
                item = event.item
                if isinstance(item, Reasoning):
                    continue
                text = _assistant_text(item)
                if text is not None:
                    final_text = text
                call = tool_call_from_item(item)
                if call is not None:
                    if call.id in tool_call_indices:
                        tool_calls[tool_call_indices[call.id]] = call
                    else:
                        tool_call_indices[call.id] = len(tool_calls)
                        tool_calls.append(call)
            elif isinstance(event, ReasoningSummaryDelta):
                summary_parts[event.summary_index] = summary_parts.get(event.summary_index, "") + event.delta
            elif isinstance(event, ReasoningSummaryPartAdded):
                summary_parts.setdefault(event.summary_index, "")
            elif isinstance(event, Completed):
                response_id = event.response_id
                if event.token_usage is not None:
                    usage = Usage.from_token_usage(event.token_usage)
                break
            elif isinstance(event, StreamError):
                error_log("[STREAM] engine stream error", model=handle.response_model, error=event.message)
                raise InternalError("Upstream model stream failed")
            elif isinstance(event, (RateLimits, Created)):
                pass
            else:
                warning_log("[STREAM] unhandled engine event in aggregation", event=repr(event))

    content = final_text
    if content is None and streamed_text.strip():
        content = streamed_text
    if content is not None and not content.strip():
        content = None

    summaries = [summary_parts[index] for index in sorted(summary_parts)]
    reasoning_content = "\n\n".join(text for text in summaries if text.strip()) or None

    return chunk_builder.build_completion(
        response_id=response_id or AGGREGATE_RESPONSE_ID,
        model=handle.response_model,
        content=content,
        tool_calls=tool_calls,
        finish_reason=_finish_reason(tool_calls),
        usage=usage,
        reasoning_content=reasoning_content,
    )


class ToolCallTracker:
    """Stable indices and already-sent argument lengths for streamed tool calls."""

    def __init__(self):
        self.indices: Dict[str, int] = {}
        self.sent_lengths: Dict[str, int] = {}
        self.streamed: List[ToolCall] = []

    def next_delta(self, item: ResponseItem, verbose: bool = False) -> Optional[Tuple[int, ToolCall]]:
        if isinstance(item, Reasoning):
            return None

        call = tool_call_from_item(item)
        if call is None:
            if verbose:
                warning_log("[STREAM] unhandled output item in stream", item=repr(item))
            return None

        index = self.indices.setdefault(call.id, len(self.indices))
        full_arguments = call.function.arguments
        sent = self.sent_lengths.get(call.id, 0)
        if len(full_arguments) <= sent:
            return None

        self.sent_lengths[call.id] = len(full_arguments)
        self.streamed.append(call)
        delta_call = call.model_copy(
            update={"function": ToolCallFunction(name=call.function.name, arguments=full_arguments[sent:])}
        )
        return index, delta_call


async def iter_stream_increments(handle: StreamingHandle, verbose: bool = False) -> AsyncIterator[Dict[str, Any]]:
    """Yield one chunk object per meaningful engine event, ending with a final or error chunk when the engine reports one."""
    model = handle.response_model
    created = current_timestamp()
    response_id = STREAM_RESPONSE_ID
    sent_role = False
    text_deltas_since_last_message = False
    tracker = ToolCallTracker()
    # full-stream buffers, only kept for the verbose log
    verbose_text: Optional[List[str]] = [] if verbose else None
    verbose_summary: Optional[List[str]] = [] if verbose else None
    verbose_reasoning: Optional[List[str]] = [] if verbose else None

    async with aclosing(handle.stream) as events:
        async for event in events:
            if isinstance(event, OutputTextDelta):
                text_deltas_since_last_message = True
                if verbose_text is not None:
                    verbose_text.append(event.delta)
                yield chunk_builder.build_content_chunk(
                    response_id, created, model, event.delta, include_role=not sent_role
                )
                sent_role = True

            elif isinstance(event, OutputItemAdded):
                if isinstance(event.item, Message):
                    continue
                progress = tracker.next_delta(event.item, verbose)
                if progress is not None:
                    yield chunk_builder.build_tool_call_chunk(response_id, created, model, progress[1], progress[0])

            elif isinstance(event, OutputItemDone):
                item = event.item
                if isinstance(item, Message):
                    # text already streamed as deltas is not repeated
                    if item.role == "assistant" and not text_deltas_since_last_message:
                        text = content_items_to_text(item.content)
                        if text is not None and text.strip():
                            if verbose_text is not None:
                                verbose_text.append(text)
                            yield chunk_builder.build_content_chunk(
                                response_id, created, model, text, include_role=not sent_role
                            )
                            sent_role = True
                    text_deltas_since_last_message = False
                    continue
                progress = tracker.next_delta(item, verbose)
                if progress is not None:
                    yield chunk_builder.build_tool_call_chunk(response_id, created, model, progress[1], progress[0])

            elif isinstance(event, ReasoningSummaryDelta):
                if verbose_summary is not None:
                    verbose_summary.append(event.delta)
                yield chunk_builder.build_reasoning_summary_chunk(response_id, created, model, event.delta)

            elif isinstance(event, ReasoningSummaryPartAdded):
                if verbose_summary:
                    verbose_summary.append("\n")

            elif isinstance(event, ReasoningContentDelta):
                if verbose_reasoning is not None:
                    verbose_reasoning.append(event.delta)
                yield chunk_builder.build_reasoning_content_chunk(response_id, created, model, event.delta)

            elif isinstance(event, Completed):
                response_id = event.response_id or response_id
                usage = Usage.from_token_usage(event.token_usage) if event.token_usage is not None else Usage()
                yield chunk_builder.build_finish_chunk(
                    response_id, created, model, _finish_reason(tracker.streamed), usage
                )
                if verbose:
                    verbose_log(verbose, "chat.stream.response", {
                        "model": model,
                        "response_id": response_id,
                        "text": "".join(verbose_text),
                        "reasoning_summary": "".join(verbose_summary),
                        "reasoning_content": "".join(verbose_reasoning),
                        "tool_calls": [call.model_dump() for call in tracker.streamed] or None,
                        "usage": usage.to_dict(),
                    })
                return

            elif isinstance(event, StreamError):
                error_log("[STREAM] engine stream error", model=model, error=event.message)
                yield chunk_builder.build_error_chunk(response_id, created, model)
                return

            elif isinstance(event, (RateLimits, Created)):
                pass

            else:
                warning_log("[STREAM] unhandled engine event in stream", event=repr(event))


class IncrementChannel:
    """
    Bounded hand-off between the producing task and the SSE response.

    ``send`` reports ``False`` once the receiving side has gone away, so the
    producer can stop without raising.
    """

    _END = object()

    def __init__(self, capacity: int = CHANNEL_CAPACITY):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: str) -> bool:
        if self._closed:
            return False
        await self._queue.put(item)
        return not self._closed

    async def finish(self) -> None:
        """Mark the end of the sequence for the receiver."""
        if not self._closed:
            await self._queue.put(self._END)

    def close(self) -> None:
        """Receiver side is gone; unblock a pending ``send``."""
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._END:
            raise StopAsyncIteration
        return item


async def pump_increments(handle: StreamingHandle, channel: IncrementChannel, verbose: bool = False) -> None:
    """Producer task: format increments as SSE lines and push them into ``channel``."""
    terminated = False
    try:
        async with aclosing(iter_stream_increments(handle, verbose)) as increments:
            async for increment in increments:
                terminated = increment["choices"][0].get("finish_reason") is not None
                if not await channel.send(chunk_builder.format_sse(increment)):
                    break
    except Exception as exc:
        error_log("[STREAM] streaming error", model=handle.response_model, error=str(exc))
        if not terminated:
            error_chunk = chunk_builder.build_error_chunk(STREAM_RESPONSE_ID, current_timestamp(), handle.response_model)
            await channel.send(chunk_builder.format_sse(error_chunk))
    finally:
        await channel.send(DONE_LINE)
        await channel.finish()
