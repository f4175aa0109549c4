"""Temporary media upload for WeCom.

Uploaded media ids are valid for three days and can be referenced from
image, voice, video, file and mpnews messages.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.logger import get_logger
from ..exceptions import ValidationError
from .http import request_json
from .models import MEDIA_TYPES, TOKEN_ERROR_CODES, UploadMedia, UploadMediaResult

if TYPE_CHECKING:
    import httpx

    from .auth import TokenManager

logger = get_logger("api.media")


class MediaMixin:
    """Mixin providing media upload for the WeCom client.

    This mixin should be used with a class that has:
    - self._ensure_client() -> httpx.Client
    - self._token_manager: TokenManager
    """

    UPLOAD_MEDIA_URL = "/media/upload"
    MEDIA_FIELD = "media"

    _token_manager: TokenManager

    def _ensure_client(self) -> httpx.Client:
        """Ensure HTTP client is initialized. To be implemented by main class."""
        raise NotImplementedError

    def upload(self, media: UploadMedia) -> UploadMediaResult:
        """Upload a local file as temporary media.

        Unlike :meth:`send`, an expired token reported by this endpoint is
        not retried; the result is returned as the server sent it.

        Args:
            media: Media type and local path.

        Returns:
            UploadMediaResult carrying the ``media_id``.

        Raises:
            ValidationError: If the media type is unknown or the file cannot be read.
            TokenExchangeError: If no access token can be obtained.
            TransportError: If the request fails or cannot be decoded.
        """
        if media.type not in MEDIA_TYPES:
            raise ValidationError(
                f"unsupported media type {media.type!r}, expected one of {sorted(MEDIA_TYPES)}"
            )

        path = Path(media.path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ValidationError(f"open media file error: {exc}") from exc

        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        client = self._ensure_client()

        token = self._token_manager.get_token()
        data = request_json(
            client,
            "POST",
            self.UPLOAD_MEDIA_URL,
            operation="upload media",
            params={"access_token": token.access_token, "type": media.type},
            files={self.MEDIA_FIELD: (path.name, content, content_type)},
        )
        result = UploadMediaResult.from_response(data)

        if result.ok:
            logger.info("Media uploaded: %s (%s)", result.media_id, media.type)
        elif result.errcode in TOKEN_ERROR_CODES:
            logger.warning(
                "Media upload rejected the access token (errcode=%d); uploads are not retried",
                result.errcode,
            )
        else:
            logger.warning(
                "Failed to upload media: errcode=%d, errmsg=%s", result.errcode, result.errmsg
            )
        return result
