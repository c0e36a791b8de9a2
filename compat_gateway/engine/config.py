"""
Per-model engine configuration
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from ..config import Settings

REASONING_EFFORTS = ("minimal", "low", "medium", "high")
# Efforts worth advertising as separate model ids.
LISTED_REASONING_EFFORTS = ("low", "medium", "high")


class ModelNotConfigured(Exception):
    """The requested model is not known to the engine."""

    def __init__(self, model: str):
        super().__init__(f"model `{model}` is not configured")
        self.model = model


@dataclass(frozen=True)
class EngineConfig:
    model: str
    base_url: str
    reasoning_effort: Optional[str] = None
    reasoning_summary: Optional[str] = None
    tools_web_search_request: bool = False
    instructions: Optional[str] = None


def parse_reasoning_variant(model: str) -> Optional[Tuple[str, str]]:
    """Split ``gpt-5-high`` into ``("gpt-5", "high")``; ``None`` without a known effort suffix."""
    trimmed = model.strip()
    if "-" not in trimmed:
        return None
    base, suffix = trimmed.rsplit("-", 1)
    suffix = suffix.lower()
    if not base or suffix not in REASONING_EFFORTS:
        return None
    return base, suffix


def reasoning_variants(model: str) -> List[str]:
    return [f"{model}-{effort}" for effort in LISTED_REASONING_EFFORTS]


class EngineConfigLoader:
    """Resolves an ``EngineConfig`` for a model id from the process settings."""

    def __init__(self, settings: Settings):
        self._models = settings.model_list
        self._base = EngineConfig(
            model=settings.DEFAULT_MODEL,
            base_url=settings.ENGINE_BASE_URL,
            reasoning_effort=settings.ENGINE_REASONING_EFFORT or None,
            reasoning_summary=settings.ENGINE_REASONING_SUMMARY or None,
            tools_web_search_request=settings.WEB_SEARCH_REQUEST,
            instructions=settings.ENGINE_INSTRUCTIONS or None,
        )

    @property
    def base_config(self) -> EngineConfig:
        return self._base

    @property
    def models(self) -> List[str]:
        return list(self._models)

    async def load(self, model: str) -> EngineConfig:
        requested = model.strip()
        if requested in self._models:
            return replace(self._base, model=requested)

        variant = parse_reasoning_variant(requested)
        if variant is not None and variant[0] in self._models:
            base_model, effort = variant
            return replace(self._base, model=base_model, reasoning_effort=effort)

        raise ModelNotConfigured(requested)
