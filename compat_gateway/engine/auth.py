"""
Engine credential lookup
"""

from pathlib import Path
from typing import Optional

import orjson

from ..helpers import debug_log


class AuthManager:
    """Finds the engine API key in the settings or in a JSON credential file."""

    def __init__(self, api_key: str = "", auth_file: Optional[str] = None):
        self._api_key = (api_key or "").strip()
        self._auth_file = Path(auth_file).expanduser() if auth_file else None

    def api_key(self) -> Optional[str]:
        if self._api_key:
            return self._api_key
        if self._auth_file is None or not self._auth_file.exists():
            return None
        try:
            data = orjson.loads(self._auth_file.read_bytes())
        except (OSError, orjson.JSONDecodeError) as exc:
            debug_log("[AUTH] unreadable credential file", path=str(self._auth_file), error=str(exc))
            return None
        if not isinstance(data, dict):
            return None
        for key in ("OPENAI_API_KEY", "api_key"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def is_authenticated(self) -> bool:
        return self.api_key() is not None


class StaticAuth:
    """Fixed authentication state, used by the in-memory test app."""

    def __init__(self, authenticated: bool):
        self._authenticated = authenticated

    def api_key(self) -> Optional[str]:
        return None

    def is_authenticated(self) -> bool:
        return self._authenticated
