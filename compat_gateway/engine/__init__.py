"""
Engine collaborator: configuration, credentials, prompt/event types and the streaming client
"""

from .auth import AuthManager, StaticAuth
from .client import EngineError, EventStream, ResponsesEngine
from .config import EngineConfig, EngineConfigLoader, ModelNotConfigured

__all__ = [
    "AuthManager",
    "StaticAuth",
    "EngineError",
    "EventStream",
    "ResponsesEngine",
    "EngineConfig",
    "EngineConfigLoader",
    "ModelNotConfigured",
]
