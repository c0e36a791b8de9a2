#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Chunk builder module - builds chat completion bodies and streaming chunks

Every streamed increment shares the response id, ``created`` timestamp and
model of its stream; only the final chunk carries ``usage``.
"""

import time
from typing import Any, Dict, List, Optional

import orjson

from ..engine.types import Usage
from ..schemas import ToolCall

DONE_LINE = "data: [DONE]\n\n"


def current_timestamp() -> int:
    return int(time.time())


class ChunkBuilder:
    """Builds OpenAI chat completion objects"""

    def build_chunk(
            self,
            response_id: str,
            created: int,
            model: str,
            delta: Dict[str, Any],
            finish_reason: Optional[str] = None,
            usage: Optional[Usage] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'id': response_id,
            'object': 'chat.completion.chunk',
            'created': created,
            'model': model,
            'choices': [{
                'index': 0,
                'delta': delta,
                'finish_reason': finish_reason,
            }],
        }
        if usage is not None:
            payload['usage'] = usage.to_dict()
        return payload

    def build_content_chunk(
            self,
            response_id: str,
            created: int,
            model: str,
            content: str,
            include_role: bool = False,
    ) -> Dict[str, Any]:
        """Text chunk; the first one of a response also carries the role"""
        delta: Dict[str, Any] = {'content': content}
        if include_role:
            delta['role'] = 'assistant'
        return self.build_chunk(response_id, created, model, delta)

    def build_tool_call_chunk(
            self,
            response_id: str,
            created: int,
            model: str,
            call: ToolCall,
            index: int,
    ) -> Dict[str, Any]:
        return self.build_chunk(response_id, created, model, {
            'tool_calls': [{
                'index': index,
                'id': call.id,
                'type': call.type,
                'function': {
                    'name': call.function.name,
                    'arguments': call.function.arguments,
                },
            }],
        })

    def build_reasoning_summary_chunk(
            self, response_id: str, created: int, model: str, text: str
    ) -> Dict[str, Any]:
        return self.build_chunk(response_id, created, model, {
            'reasoning': {'summary': [{'type': 'text', 'text': text}]},
        })

    def build_reasoning_content_chunk(
            self, response_id: str, created: int, model: str, text: str
    ) -> Dict[str, Any]:
        return self.build_chunk(response_id, created, model, {
            'reasoning': {'content': [{'type': 'text', 'text': text}]},
        })

    def build_finish_chunk(
            self,
            response_id: str,
            created: int,
            model: str,
            finish_reason: str,
            usage: Usage,
    ) -> Dict[str, Any]:
        """Final chunk: empty delta, finish reason and token usage"""
        return self.build_chunk(response_id, created, model, {}, finish_reason, usage)

    def build_error_chunk(self, response_id: str, created: int, model: str) -> Dict[str, Any]:
        return self.build_chunk(response_id, created, model, {}, 'error')

    def build_completion(
            self,
            response_id: str,
            model: str,
            content: Optional[str],
            tool_calls: List[ToolCall],
            finish_reason: str,
            usage: Usage,
            reasoning_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Non-streaming ``chat.completion`` body"""
        message: Dict[str, Any] = {'role': 'assistant'}
        if content is not None:
            message['content'] = content
        if tool_calls:
            message['tool_calls'] = [call.model_dump() for call in tool_calls]
        if reasoning_content:
            message['reasoning_content'] = reasoning_content

        return {
            'id': response_id,
            'object': 'chat.completion',
            'created': current_timestamp(),
            'model': model,
            'choices': [{
                'index': 0,
                'message': message,
                'finish_reason': finish_reason,
            }],
            'usage': usage.to_dict(),
        }

    @staticmethod
    def format_sse(payload: Dict[str, Any]) -> str:
        return f"data: {orjson.dumps(payload).decode('utf-8')}\n\n"


# Module-level singleton
chunk_builder = ChunkBuilder()
