"""
FastAPI application configuration module
"""

import os
from enum import Enum
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env overrides the process environment, even when values are empty
load_dotenv(override=True)


class DeveloperPromptMode(str, Enum):
    """How the compatibility instructions are injected into each prompt.

    - ``none``: never add the helper prompt.
    - ``default``: add it only when the request lacks a system prompt.
    - ``override``: always prepend it (the original system message is appended
      for transparency).
    """

    DISABLED = "none"
    DEFAULT = "default"
    OVERRIDE = "override"

    @classmethod
    def parse(cls, value: str) -> "DeveloperPromptMode":
        normalized = (value or "").strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(
            f"invalid developer prompt mode `{normalized}` (expected none/default/override)"
        )

    def __str__(self) -> str:
        return self.value


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    # Server Configuration
    LISTEN_HOST: str = "127.0.0.1"
    LISTEN_PORT: int = 8000

    # Logging Configuration - three levels: false, info, debug
    LOG_LEVEL: str = "info"

    # Emit full request/response/tool payloads
    VERBOSE: bool = False

    # Feature Configuration
    EXPOSE_REASONING_MODELS: bool = False
    WEB_SEARCH_REQUEST: bool = False
    DEVELOPER_PROMPT_MODE: DeveloperPromptMode = DeveloperPromptMode.DEFAULT

    # Model Configuration
    DEFAULT_MODEL: str = "gpt-5"
    ENGINE_MODELS: str = "gpt-5,gpt-5-codex,gpt-5.1,gpt-5.1-codex,gpt-5.1-codex-max"

    # Engine Configuration
    ENGINE_BASE_URL: str = "https://api.openai.com/v1"
    ENGINE_API_KEY: str = ""
    ENGINE_AUTH_FILE: str = os.path.join(os.path.expanduser("~"), ".codex", "auth.json")
    ENGINE_PROXY: Optional[str] = None
    ENGINE_REASONING_EFFORT: Optional[str] = "medium"
    ENGINE_REASONING_SUMMARY: Optional[str] = "auto"
    ENGINE_INSTRUCTIONS: Optional[str] = None

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = str(value or "info").strip().lower()
        return level if level in ["false", "info", "debug"] else "info"

    @field_validator("DEVELOPER_PROMPT_MODE", mode="before")
    @classmethod
    def _parse_prompt_mode(cls, value):
        if isinstance(value, DeveloperPromptMode):
            return value
        return DeveloperPromptMode.parse(str(value))

    @property
    def model_list(self) -> list[str]:
        """Configured model ids, default model first, without duplicates."""
        models: list[str] = []
        for model in [self.DEFAULT_MODEL] + _split_csv(self.ENGINE_MODELS):
            if model and model not in models:
                models.append(model)
        return models


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
