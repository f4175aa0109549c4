"""WeCom application message API module.

Components:
- client.py: WeComNotify client
- auth.py: Access token management and cache persistence
- message.py: Message envelope construction and sending
- media.py: Temporary media upload
- models.py: Data models
- http.py: Shared request helper
"""

from .auth import TokenManager
from .client import API_PREFIX, DEFAULT_TIMEOUT, WeComNotify, create_wecom_notify
from .media import MediaMixin
from .message import MessageMixin, build_envelope
from .models import (
    MESSAGE_TYPES,
    TOKEN_ERROR_CODES,
    File,
    Image,
    Markdown,
    Message,
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
    TokenState,
    UploadMedia,
    UploadMediaResult,
    Video,
    Voice,
    message_type_of,
)

__all__ = [
    # Main client
    "WeComNotify",
    "create_wecom_notify",
    "API_PREFIX",
    "DEFAULT_TIMEOUT",
    # Token management
    "TokenManager",
    "TokenState",
    # Messages
    "Message",
    "MESSAGE_TYPES",
    "TOKEN_ERROR_CODES",
    "message_type_of",
    "build_envelope",
    "MessageReceiver",
    "MessageOptions",
    "MessageResult",
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
    # Media
    "UploadMedia",
    "UploadMediaResult",
    # Mixins (for advanced usage)
    "MessageMixin",
    "MediaMixin",
]
