"""
Engine-native prompt, tool and event types

Every union here is closed: code that consumes them triages each variant
explicitly with ``isinstance`` and logs anything it does not handle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .json_schema import JsonSchema


# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InputText:
    text: str


@dataclass(frozen=True)
class OutputText:
    text: str


@dataclass(frozen=True)
class InputImage:
    image_url: str


ContentItem = Union[InputText, OutputText, InputImage]


def content_item_to_dict(item: ContentItem) -> Dict[str, Any]:
    if isinstance(item, InputText):
        return {"type": "input_text", "text": item.text}
    if isinstance(item, OutputText):
        return {"type": "output_text", "text": item.text}
    if isinstance(item, InputImage):
        return {"type": "input_image", "image_url": item.image_url}
    raise TypeError(f"unknown content item: {item!r}")


def content_items_to_text(content: List[ContentItem]) -> Optional[str]:
    """Join the non-empty text parts of a message, or ``None`` when there are none."""
    pieces = [
        item.text
        for item in content
        if isinstance(item, (InputText, OutputText)) and item.text
    ]
    if not pieces:
        return None
    return "\n".join(pieces)


# ---------------------------------------------------------------------------
# Prompt / response items
# ---------------------------------------------------------------------------

@dataclass
class Message:
    role: str
    content: List[ContentItem]
    id: Optional[str] = None


@dataclass
class FunctionCall:
    name: str
    arguments: str
    call_id: str
    id: Optional[str] = None


@dataclass
class FunctionCallOutput:
    call_id: str
    output: str
    success: Optional[bool] = True


@dataclass
class Reasoning:
    id: Optional[str] = None
    summary: List[str] = field(default_factory=list)
    encrypted_content: Optional[str] = None


@dataclass
class CustomToolCall:
    name: str
    input: str
    call_id: str
    id: Optional[str] = None


@dataclass
class WebSearchAction:
    """``type`` is one of ``search``, ``open_page``, ``find_in_page`` or ``other``."""

    type: str
    query: Optional[str] = None
    url: Optional[str] = None
    pattern: Optional[str] = None


@dataclass
class WebSearchCall:
    action: WebSearchAction
    id: Optional[str] = None
    status: Optional[str] = None


@dataclass
class OtherItem:
    """An engine item this gateway has no use for; kept verbatim."""

    raw: Dict[str, Any]


ResponseItem = Union[
    Message,
    FunctionCall,
    FunctionCallOutput,
    Reasoning,
    CustomToolCall,
    WebSearchCall,
    OtherItem,
]


def response_item_to_dict(item: ResponseItem) -> Dict[str, Any]:
    """Serialize a prompt item into the engine's request shape."""
    if isinstance(item, Message):
        return {
            "type": "message",
            "role": item.role,
            "content": [content_item_to_dict(part) for part in item.content],
        }
    if isinstance(item, FunctionCall):
        return {
            "type": "function_call",
            "name": item.name,
            "arguments": item.arguments,
            "call_id": item.call_id,
        }
    if isinstance(item, FunctionCallOutput):
        return {
            "type": "function_call_output",
            "call_id": item.call_id,
            "output": item.output,
        }
    if isinstance(item, Reasoning):
        payload: Dict[str, Any] = {
            "type": "reasoning",
            "summary": [{"type": "summary_text", "text": text} for text in item.summary],
        }
        if item.id:
            payload["id"] = item.id
        if item.encrypted_content:
            payload["encrypted_content"] = item.encrypted_content
        return payload
    if isinstance(item, CustomToolCall):
        return {
            "type": "custom_tool_call",
            "name": item.name,
            "input": item.input,
            "call_id": item.call_id,
        }
    if isinstance(item, WebSearchCall):
        action = {k: v for k, v in vars(item.action).items() if v is not None}
        payload = {"type": "web_search_call", "action": action}
        if item.id:
            payload["id"] = item.id
        if item.status:
            payload["status"] = item.status
        return payload
    if isinstance(item, OtherItem):
        return dict(item.raw)
    raise TypeError(f"unknown response item: {item!r}")


def _content_from_dict(entries: Any) -> List[ContentItem]:
    content: List[ContentItem] = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type")
        if kind == "output_text":
            content.append(OutputText(text=entry.get("text") or ""))
        elif kind == "input_text":
            content.append(InputText(text=entry.get("text") or ""))
        elif kind == "input_image" and isinstance(entry.get("image_url"), str):
            content.append(InputImage(image_url=entry["image_url"]))
        elif kind == "refusal":
            content.append(OutputText(text=entry.get("refusal") or ""))
    return content


def response_item_from_dict(raw: Dict[str, Any]) -> ResponseItem:
    """Parse an output item reported by the engine."""
    kind = raw.get("type")
    if kind == "message":
        return Message(
            role=raw.get("role") or "assistant",
            content=_content_from_dict(raw.get("content")),
            id=raw.get("id"),
        )
    if kind == "function_call":
        return FunctionCall(
            name=raw.get("name") or "",
            arguments=raw.get("arguments") or "",
            call_id=raw.get("call_id") or raw.get("id") or "",
            id=raw.get("id"),
        )
    if kind == "function_call_output":
        output = raw.get("output")
        return FunctionCallOutput(
            call_id=raw.get("call_id") or "",
            output=output if isinstance(output, str) else "",
        )
    if kind == "reasoning":
        summary = [
            entry.get("text") or ""
            for entry in raw.get("summary") or []
            if isinstance(entry, dict)
        ]
        return Reasoning(
            id=raw.get("id"),
            summary=summary,
            encrypted_content=raw.get("encrypted_content"),
        )
    if kind == "custom_tool_call":
        return CustomToolCall(
            name=raw.get("name") or "",
            input=raw.get("input") or "",
            call_id=raw.get("call_id") or raw.get("id") or "",
            id=raw.get("id"),
        )
    if kind == "web_search_call":
        action_raw = raw.get("action") if isinstance(raw.get("action"), dict) else {}
        action_type = action_raw.get("type")
        if action_type not in ("search", "open_page", "find_in_page"):
            action_type = "other"
        return WebSearchCall(
            action=WebSearchAction(
                type=action_type,
                query=action_raw.get("query"),
                url=action_raw.get("url"),
                pattern=action_raw.get("pattern"),
            ),
            id=raw.get("id"),
            status=raw.get("status"),
        )
    return OtherItem(raw=dict(raw))


# ---------------------------------------------------------------------------
# Tool declarations
# ---------------------------------------------------------------------------

@dataclass
class FunctionTool:
    name: str
    description: str
    strict: bool
    parameters: JsonSchema


@dataclass(frozen=True)
class WebSearchTool:
    pass


@dataclass(frozen=True)
class LocalShellTool:
    pass


@dataclass
class FreeformTool:
    name: str
    description: str
    format: Dict[str, Any] = field(default_factory=dict)


ToolSpec = Union[FunctionTool, WebSearchTool, LocalShellTool, FreeformTool]


def tool_spec_to_dict(tool: ToolSpec) -> Dict[str, Any]:
    if isinstance(tool, FunctionTool):
        return {
            "type": "function",
            "name": tool.name,
            "description": tool.description,
            "strict": tool.strict,
            "parameters": tool.parameters.model_dump(by_alias=True, exclude_none=True),
        }
    if isinstance(tool, WebSearchTool):
        return {"type": "web_search"}
    if isinstance(tool, LocalShellTool):
        return {"type": "local_shell"}
    if isinstance(tool, FreeformTool):
        return {
            "type": "custom",
            "name": tool.name,
            "description": tool.description,
            "format": tool.format,
        }
    raise TypeError(f"unknown tool spec: {tool!r}")


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

@dataclass
class Prompt:
    """Conversation plus declared tools, built fresh for every request."""

    input: List[ResponseItem] = field(default_factory=list)
    tools: List[ToolSpec] = field(default_factory=list)
    parallel_tool_calls: bool = False
    base_instructions_override: Optional[str] = None


def prompt_debug_snapshot(prompt: Prompt) -> Dict[str, Any]:
    try:
        serialized: Any = [response_item_to_dict(item) for item in prompt.input]
    except TypeError:
        serialized = "<failed to serialize prompt input>"
    return {
        "input": serialized,
        "base_instructions_override": prompt.base_instructions_override,
    }


# ---------------------------------------------------------------------------
# Token accounting
# ---------------------------------------------------------------------------

@dataclass
class TokenUsage:
    """Token counts as reported by the engine."""

    input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0
    reasoning_output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TokenUsage":
        input_details = raw.get("input_tokens_details") or {}
        output_details = raw.get("output_tokens_details") or {}
        return cls(
            input_tokens=int(raw.get("input_tokens") or 0),
            cached_input_tokens=int(input_details.get("cached_tokens") or 0),
            output_tokens=int(raw.get("output_tokens") or 0),
            reasoning_output_tokens=int(output_details.get("reasoning_tokens") or 0),
            total_tokens=int(raw.get("total_tokens") or 0),
        )


def _clamp(value: int) -> int:
    return value if value > 0 else 0


@dataclass
class Usage:
    """Token accounting compatible with OpenAI chat completions."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_token_usage(cls, tokens: TokenUsage) -> "Usage":
        return cls(
            prompt_tokens=_clamp(tokens.input_tokens) + _clamp(tokens.cached_input_tokens),
            completion_tokens=_clamp(tokens.output_tokens) + _clamp(tokens.reasoning_output_tokens),
            total_tokens=_clamp(tokens.total_tokens),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Created:
    pass


@dataclass(frozen=True)
class OutputTextDelta:
    delta: str


@dataclass
class OutputItemAdded:
    item: ResponseItem


@dataclass
class OutputItemDone:
    item: ResponseItem


@dataclass(frozen=True)
class ReasoningSummaryDelta:
    delta: str
    summary_index: int


@dataclass(frozen=True)
class ReasoningSummaryPartAdded:
    summary_index: int


@dataclass(frozen=True)
class ReasoningContentDelta:
    delta: str
    content_index: int = 0


@dataclass
class RateLimits:
    snapshot: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Completed:
    response_id: str
    token_usage: Optional[TokenUsage] = None


@dataclass(frozen=True)
class StreamError:
    message: str


ResponseEvent = Union[
    Created,
    OutputTextDelta,
    OutputItemAdded,
    OutputItemDone,
    ReasoningSummaryDelta,
    ReasoningSummaryPartAdded,
    ReasoningContentDelta,
    RateLimits,
    Completed,
    StreamError,
]
