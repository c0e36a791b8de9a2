"""
Shared application state
"""

from typing import List, Optional, Union

from .config import Settings, get_settings
from .engine.auth import AuthManager, StaticAuth
from .engine.client import ResponsesEngine
from .engine.config import EngineConfigLoader, reasoning_variants
from .errors import UnauthorizedError
from .services.executor import ChatExecutor, MockChatExecutor, RealChatExecutor
from .services.network_manager import NetworkManager


class AppState:
    """Settings, credentials and the executor shared by every request."""

    def __init__(
        self,
        settings: Settings,
        auth: Union[AuthManager, StaticAuth],
        executor: ChatExecutor,
        web_search_enabled: bool = False,
        network: Optional[NetworkManager] = None,
    ):
        self.settings = settings
        self.auth = auth
        self.executor = executor
        self.web_search_enabled = web_search_enabled
        self.network = network

    @classmethod
    def initialize(cls, settings: Settings) -> "AppState":
        """Production state backed by the Responses engine."""
        network = NetworkManager(proxy=settings.ENGINE_PROXY)
        auth = AuthManager(api_key=settings.ENGINE_API_KEY, auth_file=settings.ENGINE_AUTH_FILE)
        loader = EngineConfigLoader(settings)
        engine = ResponsesEngine(network, auth)
        return cls(
            settings=settings,
            auth=auth,
            executor=RealChatExecutor(loader, engine, settings),
            web_search_enabled=loader.base_config.tools_web_search_request,
            network=network,
        )

    @classmethod
    def insecure_mock(cls, authenticated: bool, settings: Optional[Settings] = None) -> "AppState":
        """State for tests: canned executor, fixed auth, no engine access."""
        return cls(
            settings=settings or get_settings(),
            auth=StaticAuth(authenticated),
            executor=MockChatExecutor(),
        )

    def ensure_authenticated(self) -> None:
        if not self.auth.is_authenticated():
            raise UnauthorizedError(
                "This gateway requires engine credentials. "
                "Set ENGINE_API_KEY (or provide ENGINE_AUTH_FILE) and try again."
            )

    def model_ids(self) -> List[str]:
        """Advertised model ids, with reasoning variants when enabled."""
        models: List[str] = []
        for model in self.settings.model_list:
            candidates = [model]
            if self.settings.EXPOSE_REASONING_MODELS:
                candidates.extend(reasoning_variants(model))
            for candidate in candidates:
                if candidate not in models:
                    models.append(candidate)
        return models

    async def aclose(self) -> None:
        if self.network is not None:
            await self.network.cleanup_clients()
