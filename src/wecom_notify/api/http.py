"""HTTP request helper shared by the WeCom API mixins.

Every call goes through :func:`request_json`, which turns transport
failures, HTTP status errors and undecodable bodies into
:class:`~wecom_notify.exceptions.TransportError`. API-level errors
(non-zero ``errcode``) are left to the caller.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..core.logger import get_logger
from ..exceptions import TransportError

logger = get_logger("api.http")


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    operation: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Perform a request and decode the JSON object it returns.

    Args:
        client: httpx Client instance.
        method: HTTP method.
        url: Endpoint path relative to the client's base URL.
        operation: Short description used in error messages and logs.
        **kwargs: Passed through to ``httpx.Client.request``.

    Returns:
        The decoded JSON object.

    Raises:
        TransportError: On network failure, HTTP error status or a body that
            is not a JSON object.
    """
    try:
        response = client.request(method, url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "%s failed with HTTP %s", operation, exc.response.status_code
        )
        raise TransportError(
            f"{operation} request error: HTTP {exc.response.status_code}", url=url
        ) from exc
    except httpx.HTTPError as exc:
        logger.error("%s request failed: %s", operation, exc)
        raise TransportError(f"{operation} request error: {exc}", url=url) from exc

    try:
        data = response.json()
    except ValueError as exc:
        logger.error("%s returned a non-JSON body", operation)
        raise TransportError(f"{operation} result decode error: {exc}", url=url) from exc

    if not isinstance(data, dict):
        raise TransportError(
            f"{operation} result decode error: expected a JSON object, got {type(data).__name__}",
            url=url,
        )
    return data
