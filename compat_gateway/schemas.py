"""
Application data models
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatToolFunction(BaseModel):
    """Function half of an assistant tool call"""
    name: Optional[str] = None
    arguments: Optional[str] = None


class ChatToolCall(BaseModel):
    """Tool call previously issued by the assistant"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    function: Optional[ChatToolFunction] = None


class ChatMessage(BaseModel):
    """Chat message model

    ``content`` is kept as raw JSON: text, a part array, a single part object
    or null. Its shape is validated during normalization.
    """
    model_config = ConfigDict(extra="allow")

    role: str = ""
    content: Any = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[ChatToolCall]] = None


class RequestToolFunction(BaseModel):
    """Tool function definition"""
    name: Optional[str] = None
    description: Optional[str] = None
    strict: Optional[bool] = None
    parameters: Any = None


class RequestTool(BaseModel):
    """Tool definition"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: str = Field(default="", alias="type")
    function: Optional[RequestToolFunction] = None


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible request model"""
    model_config = ConfigDict(extra="allow")

    model: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: Optional[bool] = False
    tools: Optional[List[RequestTool]] = None
    parallel_tool_calls: Optional[bool] = None


class Model(BaseModel):
    """Model information for listing"""
    id: str
    object: str = "model"


class ModelsResponse(BaseModel):
    """Models list response model"""
    object: str = "list"
    data: List[Model]


class OllamaShowRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None


class ToolCallFunction(BaseModel):
    name: str
    arguments: str


class ToolCall(BaseModel):
    """Tool call returned to the client"""
    id: str
    type: str = "function"
    function: ToolCallFunction
