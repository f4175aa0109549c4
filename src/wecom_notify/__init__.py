"""WeCom (enterprise WeChat) application message client.

A small synchronous SDK for the WeCom application message API with:
- Access token caching with optional crash-safe file persistence
- Typed message variants (text, card, news, markdown, task card, ...)
- A single refresh-and-resend when the server rejects the token
- Temporary media upload

Example:
    ```python
    from wecom_notify import MessageReceiver, Text, WeComNotify

    notify = WeComNotify(corp_id="ww123", agent_id=1000002, app_secret="xxx")
    notify.enable_token_persist()

    result = notify.send(MessageReceiver(touser="zhangsan"), Text(content="Hello!"))
    print(result.errcode, result.invalid_users)
    ```
"""

from importlib.metadata import PackageNotFoundError, version

from .api import (
    File,
    Image,
    Markdown,
    MessageOptions,
    MessageReceiver,
    MessageResult,
    MiniProgramContentItem,
    MiniProgramNotice,
    MpNews,
    MpNewsArticle,
    News,
    NewsArticle,
    TaskCard,
    TaskCardButton,
    Text,
    TextCard,
    TokenManager,
    TokenState,
    UploadMedia,
    UploadMediaResult,
    Video,
    Voice,
    WeComNotify,
    create_wecom_notify,
)
from .core import LoggingConfig, NotifyConfig, get_logger, setup_logging
from .exceptions import (
    PersistenceError,
    RemoteAPIError,
    TokenExchangeError,
    TransportError,
    UnrecognizedMessageTypeError,
    ValidationError,
    WeComError,
)

__all__ = [
    "__version__",
    # Client
    "WeComNotify",
    "create_wecom_notify",
    "TokenManager",
    "TokenState",
    # Configuration and logging
    "NotifyConfig",
    "LoggingConfig",
    "get_logger",
    "setup_logging",
    # Receivers, options and results
    "MessageReceiver",
    "MessageOptions",
    "MessageResult",
    "UploadMedia",
    "UploadMediaResult",
    # Message variants
    "Text",
    "Image",
    "Voice",
    "Video",
    "File",
    "TextCard",
    "News",
    "NewsArticle",
    "MpNews",
    "MpNewsArticle",
    "Markdown",
    "MiniProgramNotice",
    "MiniProgramContentItem",
    "TaskCard",
    "TaskCardButton",
    # Errors
    "WeComError",
    "ValidationError",
    "UnrecognizedMessageTypeError",
    "TransportError",
    "TokenExchangeError",
    "RemoteAPIError",
    "PersistenceError",
]

try:  # pragma: no cover - best-effort during development
    __version__ = version("wecom-notify")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
