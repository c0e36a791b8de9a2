#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Message processor module - converts OpenAI chat requests into engine prompts

Handles role normalization, content part conversion, assistant tool call
replay, tool results and function tool declarations.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .engine.json_schema import empty_object_schema, parse_json_schema
from .engine.types import (
    ContentItem,
    FunctionCall,
    FunctionCallOutput,
    FunctionTool,
    InputImage,
    InputText,
    Message,
    OutputText,
    Prompt,
    ResponseItem,
    tool_spec_to_dict,
)
from .errors import BadRequestError
from .helpers import verbose_log, warning_log
from .schema_sanitizer import sanitize_json_schema
from .schemas import ChatCompletionRequest, ChatMessage, ChatToolCall, RequestTool

DEFAULT_MODEL = "gpt-5"


@dataclass
class PromptPayload:
    """A normalized request, ready for execution."""

    model: str
    prompt: Prompt
    first_user_message: Optional[str] = None
    system_prompt: Optional[str] = None


class MessageProcessor:
    """
    Message processor

    Converts a ``ChatCompletionRequest`` into a ``PromptPayload``:
    - system role rewrite (the engine only knows ``developer``)
    - content part conversion with input/output polarity
    - assistant tool calls and tool results
    - function tool declarations with sanitized parameter schemas
    """

    def __init__(self, default_model: str = DEFAULT_MODEL, verbose: bool = False):
        self.default_model = default_model
        self.verbose = verbose

    def normalize(self, request: ChatCompletionRequest) -> PromptPayload:
        if not request.messages:
            raise BadRequestError("Request must include messages: []")

        model = self.normalize_model(request.model)
        prompt = Prompt()
        first_user: Optional[str] = None
        system_texts: List[str] = []

        for message in request.messages:
            role = self.normalize_role(message.role)

            if role == "tool":
                output_item = self.convert_tool_output(message)
                if output_item is not None:
                    prompt.input.append(output_item)
                continue

            if role == "assistant":
                prompt.input.extend(self.convert_assistant_tool_calls(message.tool_calls))

            content = self.convert_content(role, message.content)

            if role == "user" and first_user is None:
                first_user = _first_input_text(content)
            if role == "developer":
                system_texts.extend(
                    item.text for item in content if isinstance(item, InputText) and item.text.strip()
                )

            if not content:
                continue

            prompt.input.append(Message(role=role, content=content))

        specs = self.convert_function_tools(request.tools or [])
        if specs:
            verbose_log(self.verbose, "chat.tools", [tool_spec_to_dict(spec) for spec in specs])
            prompt.tools.extend(specs)

        if request.parallel_tool_calls is not None:
            prompt.parallel_tool_calls = request.parallel_tool_calls

        return PromptPayload(
            model=model,
            prompt=prompt,
            first_user_message=first_user,
            system_prompt="\n\n".join(system_texts) if system_texts else None,
        )

    def normalize_model(self, model: str) -> str:
        trimmed = (model or "").strip()
        return trimmed or self.default_model

    @staticmethod
    def normalize_role(role: str) -> str:
        trimmed = (role or "").strip()
        if not trimmed:
            return "user"
        lowered = trimmed.lower()
        # The engine rejects role=system; it goes to the developer stream instead.
        if lowered == "system":
            return "developer"
        return lowered

    def convert_content(self, role: str, value: Any) -> List[ContentItem]:
        if value is None:
            return []
        if isinstance(value, str):
            return [_content_item_for_role(role, value)]
        if isinstance(value, list):
            return [self.convert_content_item(role, item) for item in value]
        if isinstance(value, dict):
            text = value.get("text")
            if isinstance(text, str):
                return [_content_item_for_role(role, text)]
            ctype = value.get("type")
            if not isinstance(ctype, str):
                raise BadRequestError("Message content object must include `type`")
            return [self._convert_typed_part(role, ctype, value)]
        raise BadRequestError("Message content must be text or a structured content array")

    def convert_content_item(self, role: str, value: Any) -> ContentItem:
        if isinstance(value, str):
            return _content_item_for_role(role, value)
        if isinstance(value, dict):
            ctype = value.get("type")
            if not isinstance(ctype, str):
                raise BadRequestError("Content item missing `type`")
            return self._convert_typed_part(role, ctype, value)
        raise BadRequestError("Content items must be strings or structured objects")

    def _convert_typed_part(self, role: str, ctype: str, part: Dict[str, Any]) -> ContentItem:
        if ctype in ("text", "input_text"):
            text = part.get("text")
            if not isinstance(text, str):
                raise BadRequestError("text block missing `text`")
            return _content_item_for_role(role, text)
        if ctype in ("image_url", "input_image"):
            return InputImage(image_url=_extract_image_url(part))
        raise BadRequestError(f"Unsupported content type `{ctype}`")

    @staticmethod
    def convert_assistant_tool_calls(calls: Optional[List[ChatToolCall]]) -> List[ResponseItem]:
        items: List[ResponseItem] = []
        for call in calls or []:
            call_type = call.type or "function"
            if call_type.lower() != "function" or call.function is None:
                continue
            name = (call.function.name or "").strip()
            if not name:
                continue
            arguments = call.function.arguments if call.function.arguments is not None else "{}"
            call_id = call.id if call.id and call.id.strip() else f"call_{len(items)}"
            items.append(FunctionCall(name=name, arguments=arguments, call_id=call_id))
        return items

    @staticmethod
    def convert_tool_output(message: ChatMessage) -> Optional[FunctionCallOutput]:
        if message.tool_call_id is None:
            return None
        content = message.content
        if isinstance(content, str):
            output = content
        elif isinstance(content, list):
            output = "\n".join(
                part["text"]
                for part in content
                if isinstance(part, dict) and isinstance(part.get("text"), str)
            )
        else:
            return None
        return FunctionCallOutput(call_id=message.tool_call_id, output=output, success=True)

    def convert_function_tools(self, tools: List[RequestTool]) -> List[FunctionTool]:
        specs: List[FunctionTool] = []
        for tool in tools:
            if tool.kind.lower() != "function" or tool.function is None:
                continue
            function = tool.function
            name = (function.name or "").strip()
            if not name:
                continue
            description = (function.description or "").strip()

            parameters_value = sanitize_json_schema(_normalize_tool_schema(function.parameters))
            try:
                parameters = parse_json_schema(parameters_value)
            except ValidationError as exc:
                warning_log(
                    "[TOOLS] invalid tool schema; falling back to empty object",
                    tool=name,
                    error=str(exc),
                    schema=parameters_value,
                )
                parameters = empty_object_schema()

            specs.append(
                FunctionTool(
                    name=name,
                    description=description,
                    strict=bool(function.strict),
                    parameters=parameters,
                )
            )
        return specs


def _content_item_for_role(role: str, text: str) -> ContentItem:
    if role == "assistant":
        return OutputText(text=text)
    return InputText(text=text)


def _extract_image_url(part: Dict[str, Any]) -> str:
    image_url = part.get("image_url")
    if isinstance(image_url, str):
        return image_url
    if isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
        return image_url["url"]
    raise BadRequestError("image content requires `image_url`")


def _first_input_text(content: List[ContentItem]) -> Optional[str]:
    for item in content:
        if isinstance(item, InputText) and item.text.strip():
            return item.text
    return None


def _normalize_tool_schema(parameters: Any) -> Dict[str, Any]:
    if isinstance(parameters, dict):
        schema = copy.deepcopy(parameters)
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return schema
    return {"type": "object", "properties": {}}
