"""Token storage for persistent authentication.

Stores the single access/refresh token pair of a client session in a JSON
file so a restarted bridge can skip the full login flow.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import DEFAULT_TOKEN_FILENAME

_LOGGER = logging.getLogger(__name__)


class TokenStorage:
    """Manages persistent storage of the session tokens."""

    DEFAULT_STORAGE_PATH = Path.cwd() / DEFAULT_TOKEN_FILENAME

    def __init__(self, storage_path: Optional[Path] = None):
        """Initialize token storage.

        Args:
            storage_path: Path to token storage file. Defaults to ./tokens.json
        """
        self.storage_path = Path(storage_path) if storage_path else self.DEFAULT_STORAGE_PATH

    def _ensure_storage_dir(self):
        """Create storage directory if it doesn't exist."""
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Optional[Dict[str, Any]]:
        """Load stored tokens.

        Returns:
            Dict with 'accessToken', 'refreshToken', 'eat' and 'iat',
            or None if nothing usable is stored.
        """
        if not self.storage_path.exists():
            return None
        try:
            with open(self.storage_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            _LOGGER.error("Error reading %s: %s", self.storage_path, e)
            return None

        if not isinstance(data, dict) or not data.get("accessToken"):
            return None

        _LOGGER.debug("%s loaded", self.storage_path.name)
        return data

    def save(
        self,
        access_token: str,
        refresh_token: str,
        expires_at: float,
        issued_at: float,
    ):
        """Save the token pair.

        Args:
            access_token: Bearer token for API calls
            refresh_token: Token used to obtain a new access token
            expires_at: Access token expiry (epoch seconds)
            issued_at: Access token issue time (epoch seconds)
        """
        data = {
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "eat": expires_at,
            "iat": issued_at,
        }
        self._ensure_storage_dir()
        with open(self.storage_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        _LOGGER.debug("Tokens saved to %s", self.storage_path)

    def clear(self):
        """Remove stored tokens."""
        if self.storage_path.exists():
            self.storage_path.unlink()
