"""WeCom application message API client.

This module provides the main WeComNotify client class that combines
message sending and media upload through mixins, backed by a
TokenManager for the access token.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from ..core.config import DEFAULT_CACHE_FILE, NotifyConfig
from ..core.logger import get_logger, setup_logging
from .auth import TokenManager
from .media import MediaMixin
from .message import MessageMixin
from .models import TokenState

logger = get_logger("api.client")

# API base URL
API_PREFIX = "https://qyapi.weixin.qq.com/cgi-bin"

# Fixed request timeout in seconds
DEFAULT_TIMEOUT = 10.0


class WeComNotify(MessageMixin, MediaMixin):
    """WeCom application message client.

    Sends messages as one application (``agent_id``) of one enterprise
    (``corp_id``). The access token is fetched on first use and refreshed
    when it expires; with token persistence enabled it is also cached on
    disk between runs.

    Example:
        ```python
        with WeComNotify(corp_id="ww123", agent_id=1000002, app_secret="xxx") as notify:
            notify.enable_token_persist()

            result = notify.send(
                MessageReceiver(touser="@all"),
                TextCard(
                    title="Build passed",
                    description="main #1024",
                    url="https://ci.example.com/1024",
                ),
            )
            result.raise_for_error()
        ```
    """

    def __init__(
        self,
        corp_id: str,
        agent_id: int,
        app_secret: str,
        *,
        token_persist: bool = False,
        cache_file_path: str | Path = DEFAULT_CACHE_FILE,
        base_url: str | None = None,
    ):
        """Initialize the client.

        Args:
            corp_id: Enterprise ID, shown on the company info page.
            agent_id: Application agent ID, shown on the application page.
            app_secret: Application secret, shown on the application page.
            token_persist: Load and save the access token cache file.
            cache_file_path: Location of the access token cache file.
            base_url: Override the API prefix (for testing).
        """
        self.corp_id = corp_id
        self.agent_id = agent_id
        self.base_url = base_url or API_PREFIX

        self._client: httpx.Client | None = httpx.Client(
            base_url=self.base_url, timeout=DEFAULT_TIMEOUT
        )
        self._token_manager = TokenManager(
            self._client,
            corp_id=corp_id,
            app_secret=app_secret,
            agent_id=agent_id,
            token_persist=token_persist,
            cache_file_path=cache_file_path,
        )
        logger.debug("WeComNotify client created for corp %s agent %s", corp_id, agent_id)

    @classmethod
    def from_config(cls, config: NotifyConfig) -> WeComNotify:
        """Create a client from a NotifyConfig."""
        return cls(
            corp_id=config.corp_id,
            agent_id=config.agent_id,
            app_secret=config.app_secret.get_secret_value(),
            token_persist=config.token_persist,
            cache_file_path=config.cache_file_path,
            base_url=config.base_url,
        )

    def __enter__(self) -> WeComNotify:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.debug("WeComNotify client closed")

    def _ensure_client(self) -> httpx.Client:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            raise RuntimeError("WeComNotify client is closed")
        return self._client

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    def get_token(self, force_refresh: bool = False) -> TokenState:
        """Return a valid access token, see :meth:`TokenManager.get_token`."""
        self._ensure_client()
        return self._token_manager.get_token(force_refresh=force_refresh)

    def enable_token_persist(self) -> None:
        """Persist the access token to the cache file from now on."""
        self._token_manager.enable_token_persist()

    def set_cache_file_path(self, path: str | Path) -> None:
        """Change where the access token cache file is kept."""
        self._token_manager.set_cache_file_path(path)


def create_wecom_notify(config: NotifyConfig) -> WeComNotify:
    """Factory function to create a client, applying its logging settings.

    Args:
        config: Loaded NotifyConfig.

    Returns:
        Configured WeComNotify instance.
    """
    setup_logging(config.logging)
    return WeComNotify.from_config(config)
