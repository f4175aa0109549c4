"""Message API operations for WeCom.

This module provides:
- Envelope construction from receiver, message variant and options
- Sending application messages with a single token-refresh retry
- Convenience senders for text and markdown
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..core.logger import get_logger
from ..exceptions import ValidationError
from .http import request_json
from .models import (
    TOKEN_ERROR_CODES,
    Markdown,
    Message,
    MessageOptions,
    MessageReceiver,
    MessageResult,
    Text,
    message_type_of,
)

if TYPE_CHECKING:
    import httpx

    from .auth import TokenManager

logger = get_logger("api.message")


def build_envelope(
    agent_id: int,
    receiver: MessageReceiver,
    message: Message | None,
    options: MessageOptions | None = None,
) -> dict[str, Any]:
    """Assemble the JSON body for the message send endpoint.

    Args:
        agent_id: Sending application's agent id.
        receiver: Target users, departments and tags.
        message: One of the message variants.
        options: Optional per-send flags.

    Returns:
        The request body.

    Raises:
        ValidationError: If the message is None or no receiver is set.
        UnrecognizedMessageTypeError: If the message is not a known variant.
    """
    if message is None:
        raise ValidationError("message can not be None")
    if receiver.is_empty():
        raise ValidationError("message receiver not set, set at least one")

    msgtype = message_type_of(message)

    envelope: dict[str, Any] = receiver.to_dict()
    envelope["agentid"] = agent_id
    if options is not None:
        options.apply(envelope)
    envelope["msgtype"] = msgtype
    envelope[msgtype] = message.to_payload()
    return envelope


class MessageMixin:
    """Mixin providing message sending for the WeCom client.

    This mixin should be used with a class that has:
    - self.agent_id: int
    - self._ensure_client() -> httpx.Client
    - self._token_manager: TokenManager
    """

    SEND_MESSAGE_URL = "/message/send"

    agent_id: int
    _token_manager: TokenManager

    def _ensure_client(self) -> httpx.Client:
        """Ensure HTTP client is initialized. To be implemented by main class."""
        raise NotImplementedError

    def send(
        self,
        receiver: MessageReceiver,
        message: Message,
        options: MessageOptions | None = None,
    ) -> MessageResult:
        """Send an application message.

        If the server reports the access token as expired or invalid
        (errcode 42001 or 40014) the token is refreshed once and the
        message is sent once more; the second result is returned whatever
        it is. A message may therefore be delivered twice if the first
        attempt actually succeeded upstream.

        Args:
            receiver: Target users, departments and tags.
            message: One of the message variants.
            options: Optional per-send flags.

        Returns:
            MessageResult. A non-zero errcode is reported here, not raised;
            call ``raise_for_error()`` to turn it into an exception.

        Raises:
            ValidationError: If the message or receiver is rejected locally.
            UnrecognizedMessageTypeError: If the message is not a known variant.
            TokenExchangeError: If no access token can be obtained.
            TransportError: If the request fails or cannot be decoded.

        Example:
            ```python
            result = notify.send(
                MessageReceiver(touser="zhangsan|lisi"),
                Text(content="Deployment finished"),
                MessageOptions(enable_duplicate_check=True, duplicate_check_interval=600),
            )
            if result.has_invalid_receivers:
                print("Not delivered to:", result.invalid_users)
            ```
        """
        envelope = build_envelope(self.agent_id, receiver, message, options)
        self._ensure_client()

        token = self._token_manager.get_token()
        result = self._post_message(envelope, token.access_token)

        if result.errcode in TOKEN_ERROR_CODES:
            logger.info(
                "Access token rejected (errcode=%d), refreshing and resending once",
                result.errcode,
            )
            token = self._token_manager.get_token(
                force_refresh=True, stale_token=token.access_token
            )
            result = self._post_message(envelope, token.access_token)

        self._log_result(envelope["msgtype"], result)
        return result

    def send_text(
        self,
        receiver: MessageReceiver,
        content: str,
        options: MessageOptions | None = None,
    ) -> MessageResult:
        """Send a plain text message."""
        return self.send(receiver, Text(content=content), options)

    def send_markdown(
        self,
        receiver: MessageReceiver,
        content: str,
        options: MessageOptions | None = None,
    ) -> MessageResult:
        """Send a markdown message."""
        return self.send(receiver, Markdown(content=content), options)

    def _post_message(self, envelope: dict[str, Any], access_token: str) -> MessageResult:
        data = request_json(
            self._ensure_client(),
            "POST",
            self.SEND_MESSAGE_URL,
            operation="send message",
            params={"access_token": access_token},
            json=envelope,
        )
        return MessageResult.from_response(data)

    @staticmethod
    def _log_result(msgtype: str, result: MessageResult) -> None:
        if not result.ok:
            logger.warning(
                "Failed to send %s message: errcode=%d, errmsg=%s",
                msgtype,
                result.errcode,
                result.errmsg,
            )
            return

        if result.has_invalid_receivers:
            logger.warning(
                "%s message sent with invalid receivers: users=%s parties=%s tags=%s",
                msgtype,
                result.invaliduser or "-",
                result.invalidparty or "-",
                result.invalidtag or "-",
            )
        else:
            logger.info("%s message sent successfully: %s", msgtype, result.msgid or "-")
