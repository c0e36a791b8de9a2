import pytest
from fastapi.testclient import TestClient

from compat_gateway.config import DeveloperPromptMode, Settings
from compat_gateway.services.stream_aggregator import StreamingHandle
from compat_gateway.state import AppState
from main import create_app


@pytest.fixture
def settings():
    return Settings(
        LOG_LEVEL="false",
        DEFAULT_MODEL="gpt-5",
        ENGINE_MODELS="gpt-5,gpt-5-codex",
        ENGINE_BASE_URL="http://engine.test/v1",
        ENGINE_API_KEY="",
        ENGINE_AUTH_FILE="",
        WEB_SEARCH_REQUEST=False,
        EXPOSE_REASONING_MODELS=False,
        DEVELOPER_PROMPT_MODE=DeveloperPromptMode.DEFAULT,
    )


@pytest.fixture
def make_client(settings):
    """TestClient over an app built with the canned executor."""

    def _make(authenticated=True, state=None, **overrides):
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        if state is None:
            state = AppState.insecure_mock(authenticated, app_settings)
        return TestClient(create_app(state))

    return _make


@pytest.fixture
def make_handle():
    """Wrap a scripted event list in a StreamingHandle."""

    def _make(events, model="gpt-5"):
        async def stream():
            for event in events:
                yield event

        return StreamingHandle(response_model=model, stream=stream())

    return _make
