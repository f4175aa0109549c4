"""Access token management for the WeCom API.

This module handles:
- Exchanging corp id and secret for an access token
- In-memory caching with strict expiry checks
- Optional crash-safe persistence of the token to a JSON file
"""

from __future__ import annotations

import os
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.config import DEFAULT_CACHE_FILE
from ..core.logger import get_logger, mask_token
from ..exceptions import PersistenceError, TokenExchangeError, TransportError
from .http import request_json
from .models import TokenState, parse_errcode

logger = get_logger("api.auth")


class TokenManager:
    """Owns the access token of one WeCom application.

    The token is refreshed lazily: :meth:`get_token` returns the cached
    token while it is valid and calls the ``gettoken`` endpoint otherwise.
    When persistence is enabled the token is also written to
    ``cache_file_path`` so that it survives process restarts. Persistence
    problems never make a valid in-memory token unusable.

    All token reads and refreshes happen under one lock, so threads sharing
    a manager never refresh concurrently or observe a half-updated token.

    Example:
        ```python
        with httpx.Client(base_url=API_PREFIX, timeout=10.0) as client:
            manager = TokenManager(client, corp_id="ww123", app_secret="xxx")
            state = manager.get_token()
            print(state.access_token, state.token_expires_at)
        ```
    """

    TOKEN_URL = "/gettoken"

    def __init__(
        self,
        client: httpx.Client,
        corp_id: str,
        app_secret: str,
        agent_id: int = 0,
        *,
        token_persist: bool = False,
        cache_file_path: str | Path = DEFAULT_CACHE_FILE,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token manager.

        Args:
            client: httpx Client whose base URL is the API prefix.
            corp_id: Enterprise ID.
            app_secret: Application secret.
            agent_id: Application agent ID, recorded in the cache file.
            token_persist: Load and save the token cache file.
            cache_file_path: Location of the token cache file.
            clock: Returns the current unix time; replaceable in tests.
        """
        self._client = client
        self._corp_id = corp_id
        self._app_secret = app_secret
        self._agent_id = agent_id
        self._token_persist = token_persist
        self._cache_file_path = str(cache_file_path)
        self._clock = clock
        self._lock = threading.RLock()
        self._state: TokenState | None = None

        if self._token_persist:
            self._try_load_cache()

    @property
    def state(self) -> TokenState | None:
        """Current token state, or None before the first refresh."""
        with self._lock:
            return self._state

    @property
    def token_persist(self) -> bool:
        return self._token_persist

    @property
    def cache_file_path(self) -> str:
        return self._cache_file_path

    def enable_token_persist(self) -> None:
        """Turn on token persistence and adopt a usable cache if present."""
        with self._lock:
            self._token_persist = True
            if not self._has_valid_token():
                self._try_load_cache()

    def set_cache_file_path(self, path: str | Path) -> None:
        with self._lock:
            self._cache_file_path = str(path)

    def invalidate(self) -> None:
        """Forget the in-memory token so the next call refreshes it."""
        with self._lock:
            self._state = None

    def get_token(
        self,
        force_refresh: bool = False,
        stale_token: str | None = None,
    ) -> TokenState:
        """Return a valid access token, refreshing it if needed.

        Args:
            force_refresh: Refresh even if the cached token looks valid.
            stale_token: With ``force_refresh``, the token the caller saw
                rejected. If another caller has already replaced it, the
                newer token is returned without a second refresh.

        Returns:
            The current TokenState.

        Raises:
            TransportError: If the token request fails or cannot be decoded.
            TokenExchangeError: If the server returns a non-zero errcode.
        """
        with self._lock:
            if self._has_valid_token():
                if not force_refresh:
                    return self._state
                if stale_token is not None and self._state.access_token != stale_token:
                    logger.debug("Token already refreshed by another caller")
                    return self._state

            return self._refresh()

    def load_cache(self) -> TokenState:
        """Adopt the token stored in the cache file.

        Returns:
            The loaded TokenState.

        Raises:
            PersistenceError: If persistence is disabled or the file is
                missing, unreadable, belongs to another corp, or holds an
                expired token.
        """
        with self._lock:
            if not self._token_persist:
                raise PersistenceError("token persist not enabled")

            path = Path(self._cache_file_path)
            try:
                raw = path.read_bytes()
            except OSError as exc:
                raise PersistenceError(
                    f"read cache file error: {exc}", path=str(path)
                ) from exc

            try:
                cached = TokenState.model_validate_json(raw)
            except PydanticValidationError as exc:
                raise PersistenceError(
                    f"unmarshal cache data error: {exc}", path=str(path)
                ) from exc

            if cached.corp_id and cached.corp_id != self._corp_id:
                raise PersistenceError(
                    f"cache file belongs to corp {cached.corp_id}", path=str(path)
                )
            if not cached.is_valid(self._clock()):
                raise PersistenceError("token expired", path=str(path))

            self._state = cached
            logger.info(
                "Loaded access token %s from %s (expires in %d seconds)",
                mask_token(cached.access_token),
                path,
                cached.expires_in(self._clock()),
            )
            return cached

    def save_cache(self) -> None:
        """Atomically write the current token to the cache file.

        The data goes to a temporary file in the target directory, is
        fsynced, and is then renamed over the cache path, so the cache path
        only ever holds a complete document.

        Raises:
            PersistenceError: If persistence is disabled, there is no token
                yet, or any filesystem operation fails.
        """
        with self._lock:
            if not self._token_persist:
                raise PersistenceError("token persist not enabled")
            if self._state is None:
                raise PersistenceError("no access token to save")

            path = Path(self._cache_file_path)
            content = self._state.model_dump_json()

            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise PersistenceError(
                    f"create cache directory failed: {exc}", path=str(path)
                ) from exc

            try:
                fd, tmp_path = tempfile.mkstemp(
                    prefix=f"{path.name}.", suffix=".tmp", dir=path.parent
                )
            except OSError as exc:
                raise PersistenceError(
                    f"create temp file failed: {exc}", path=str(path)
                ) from exc

            replaced = False
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, path)
                replaced = True
            except OSError as exc:
                raise PersistenceError(
                    f"write cache file failed: {exc}", path=str(path)
                ) from exc
            finally:
                if not replaced and os.path.exists(tmp_path):
                    os.remove(tmp_path)

            logger.debug("Saved access token cache to %s", path)

    def _has_valid_token(self) -> bool:
        return self._state is not None and self._state.is_valid(self._clock())

    def _try_load_cache(self) -> None:
        try:
            self.load_cache()
        except PersistenceError as exc:
            logger.debug("No usable token cache: %s", exc)

    def _refresh(self) -> TokenState:
        logger.debug("Requesting new access_token for corp %s", self._corp_id)

        data = request_json(
            self._client,
            "GET",
            self.TOKEN_URL,
            operation="token get",
            params={"corpid": self._corp_id, "corpsecret": self._app_secret},
        )

        errcode = parse_errcode(data, "token get")
        if errcode != 0:
            errmsg = str(data.get("errmsg", "Unknown error"))
            logger.error("Failed to get access_token: errcode=%d, errmsg=%s", errcode, errmsg)
            raise TokenExchangeError(errcode, errmsg)

        try:
            expires_in = int(data.get("expires_in", 0))
            self._state = TokenState(
                access_token=data.get("access_token", ""),
                token_expires_at=int(self._clock()) + expires_in,
                corp_id=self._corp_id,
                agent_id=self._agent_id,
            )
        except (TypeError, ValueError) as exc:
            raise TransportError(
                f"token get result decode error: {exc}", url=self.TOKEN_URL
            ) from exc
        logger.info(
            "Obtained access_token %s (expires in %d seconds)",
            mask_token(self._state.access_token),
            expires_in,
        )

        if self._token_persist:
            try:
                self.save_cache()
            except PersistenceError as exc:
                logger.warning("Token cache not updated: %s", exc)

        return self._state
