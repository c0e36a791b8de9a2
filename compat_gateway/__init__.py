"""
compat_gateway package - OpenAI-compatible chat gateway over a Responses-style engine
"""

from .config import DeveloperPromptMode, Settings, get_settings
from .helpers import configure_structlog, debug_log, get_logger
from .message_processor import MessageProcessor, PromptPayload
from .schema_sanitizer import sanitize_json_schema
from .schemas import ChatCompletionRequest, Model, ModelsResponse

__all__ = [
    "DeveloperPromptMode",
    "Settings",
    "get_settings",
    "configure_structlog",
    "debug_log",
    "get_logger",
    "MessageProcessor",
    "PromptPayload",
    "sanitize_json_schema",
    "ChatCompletionRequest",
    "Model",
    "ModelsResponse",
]
