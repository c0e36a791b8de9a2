"""
Streaming client for the Responses-style engine endpoint
"""

from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

import httpx
import orjson
from furl import furl

from ..helpers import debug_log, error_log, perf_timer, request_stage_log
from ..services.network_manager import NetworkManager
from .auth import AuthManager
from .config import EngineConfig
from .types import (
    Completed,
    Created,
    OutputItemAdded,
    OutputItemDone,
    OutputTextDelta,
    Prompt,
    RateLimits,
    ReasoningContentDelta,
    ReasoningSummaryDelta,
    ReasoningSummaryPartAdded,
    ResponseEvent,
    StreamError,
    TokenUsage,
    response_item_from_dict,
    response_item_to_dict,
    tool_spec_to_dict,
)

RATE_LIMIT_HEADER_PREFIX = "x-ratelimit-"


class EngineError(Exception):
    """The engine could not be reached or rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _index(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"invalid index: {value!r}")
    return int(value)


def _failure_message(response: Dict[str, Any]) -> str:
    error = response.get("error")
    if isinstance(error, str) and error:
        return error
    return _mapping(error).get("message") or "response failed"


def parse_event(data: Dict[str, Any]) -> Optional[ResponseEvent]:
    """
    Map one decoded SSE payload onto an engine event; ``None`` for event kinds with no use here.

    Raises ``ValueError`` when a known event carries an unusable index.
    """
    kind = data.get("type")

    if kind == "response.created":
        return Created()
    if kind == "response.output_text.delta":
        return OutputTextDelta(delta=data.get("delta") or "")
    if kind in ("response.output_item.added", "response.output_item.done"):
        item = data.get("item")
        if not isinstance(item, dict):
            return None
        parsed = response_item_from_dict(item)
        if kind == "response.output_item.added":
            return OutputItemAdded(item=parsed)
        return OutputItemDone(item=parsed)
    if kind == "response.reasoning_summary_text.delta":
        return ReasoningSummaryDelta(
            delta=data.get("delta") or "",
            summary_index=_index(data.get("summary_index")),
        )
    if kind == "response.reasoning_summary_part.added":
        return ReasoningSummaryPartAdded(summary_index=_index(data.get("summary_index")))
    if kind == "response.reasoning_text.delta":
        return ReasoningContentDelta(
            delta=data.get("delta") or "",
            content_index=_index(data.get("content_index")),
        )
    if kind == "response.completed":
        response = _mapping(data.get("response"))
        usage = response.get("usage")
        return Completed(
            response_id=response.get("id") or "",
            token_usage=TokenUsage.from_dict(usage) if isinstance(usage, dict) else None,
        )
    if kind == "response.failed":
        return StreamError(message=_failure_message(_mapping(data.get("response"))))
    if kind == "error":
        return StreamError(message=data.get("message") or "engine reported an error")

    debug_log("[ENGINE] ignoring event", event_type=kind)
    return None


class EventStream:
    """
    Async iterator over the events of one engine response.

    Always terminates with ``Completed`` or ``StreamError``; the underlying
    HTTP response is closed when iteration ends or is abandoned.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._iterator: Optional[AsyncGenerator[ResponseEvent, None]] = None

    def __aiter__(self) -> AsyncIterator[ResponseEvent]:
        if self._iterator is None:
            self._iterator = self._iterate()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()
        await self._response.aclose()

    def _rate_limit_snapshot(self) -> Dict[str, str]:
        return {
            name[len(RATE_LIMIT_HEADER_PREFIX):]: value
            for name, value in self._response.headers.items()
            if name.lower().startswith(RATE_LIMIT_HEADER_PREFIX)
        }

    async def _iterate(self) -> AsyncGenerator[ResponseEvent, None]:
        finished = False
        try:
            snapshot = self._rate_limit_snapshot()
            if snapshot:
                yield RateLimits(snapshot=snapshot)

            async for line in self._response.aiter_lines():
                if not line or not line.startswith("data:"):
                    continue

                chunk_str = line[5:].strip()
                if not chunk_str or chunk_str == "[DONE]":
                    continue

                try:
                    data = orjson.loads(chunk_str)
                except orjson.JSONDecodeError as exc:
                    debug_log("[ENGINE] undecodable SSE payload", error=str(exc), payload=chunk_str[:200])
                    continue
                if not isinstance(data, dict):
                    continue

                try:
                    event = parse_event(data)
                except (AttributeError, TypeError, ValueError) as exc:
                    error_log("[ENGINE] malformed engine event", event_type=data.get("type"), error=str(exc))
                    finished = True
                    yield StreamError(message=f"malformed engine event: {data.get('type')}")
                    return
                if event is None:
                    continue
                yield event
                if isinstance(event, (Completed, StreamError)):
                    finished = True
                    return
        except httpx.HTTPError as exc:
            error_log("[ENGINE] stream transport error", error=str(exc))
            finished = True
            yield StreamError(message=f"engine stream failed: {exc}")
        finally:
            await self._response.aclose()

        if not finished:
            yield StreamError(message="stream closed before response.completed")


class ResponsesEngine:
    """Opens one streaming ``POST /responses`` per prompt."""

    def __init__(self, network: NetworkManager, auth: AuthManager):
        self._network = network
        self._auth = auth

    @staticmethod
    def build_request_body(config: EngineConfig, prompt: Prompt) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": config.model,
            "input": [response_item_to_dict(item) for item in prompt.input],
            "tools": [tool_spec_to_dict(tool) for tool in prompt.tools],
            "tool_choice": "auto",
            "parallel_tool_calls": prompt.parallel_tool_calls,
            "stream": True,
            "store": False,
            "include": [],
        }

        instructions = prompt.base_instructions_override or config.instructions
        if instructions:
            body["instructions"] = instructions

        if config.reasoning_effort:
            reasoning: Dict[str, Any] = {"effort": config.reasoning_effort}
            if config.reasoning_summary and config.reasoning_summary != "none":
                reasoning["summary"] = config.reasoning_summary
            body["reasoning"] = reasoning

        return body

    @staticmethod
    def endpoint_url(config: EngineConfig) -> str:
        return furl(config.base_url.rstrip("/")).add(path=["responses"]).url

    async def execute(self, config: EngineConfig, prompt: Prompt) -> EventStream:
        api_key = self._auth.api_key()
        if not api_key:
            raise EngineError("no engine credentials available")

        url = self.endpoint_url(config)
        body = self.build_request_body(config, prompt)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

        client = await self._network.get_client()
        request = client.build_request("POST", url, content=orjson.dumps(body), headers=headers)
        request_stage_log("engine_request", "Opening engine stream", model=config.model, url=url)

        with perf_timer("engine_ttfb"):
            try:
                response = await client.send(request, stream=True)
            except httpx.HTTPError as exc:
                raise EngineError(f"engine request failed: {exc}") from exc

        if response.status_code != 200:
            error_text = await response.aread()
            await response.aclose()
            error_msg = error_text.decode("utf-8", errors="ignore")
            error_log(
                "[ENGINE] engine returned an error",
                status_code=response.status_code,
                error_detail=error_msg[:200],
            )
            raise EngineError(
                f"engine returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return EventStream(response)
