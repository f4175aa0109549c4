"""Data models for the WeCom application message API.

This module contains the receiver and send options, the closed set of
message variants, the API result records and the token cache record.

Field size limits quoted in the docstrings come from the vendor
documentation; they are not enforced here, the remote API truncates or
rejects oversized values itself.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import (
    RemoteAPIError,
    TransportError,
    UnrecognizedMessageTypeError,
    ValidationError,
)

# Media types accepted by the temporary media upload endpoint
MediaType = Literal["image", "voice", "video", "file"]
MEDIA_TYPES: frozenset[str] = frozenset({"image", "voice", "video", "file"})

# errcode values signalling that the access token must be refreshed
TOKEN_EXPIRED_CODE = 42001
TOKEN_INVALID_CODE = 40014
TOKEN_ERROR_CODES: frozenset[int] = frozenset({TOKEN_EXPIRED_CODE, TOKEN_INVALID_CODE})

# Upper bound of duplicate_check_interval, in seconds (4 hours)
MAX_DUPLICATE_CHECK_INTERVAL = 14400

RECEIVER_SEPARATOR = "|"


def _omitempty(default: Any = "", **kwargs: Any) -> Any:
    """Declare an optional payload field dropped from JSON when empty."""
    if isinstance(default, list):
        return field(default_factory=list, metadata={"omitempty": True}, **kwargs)
    return field(default=default, metadata={"omitempty": True}, **kwargs)


def _to_payload(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        payload: dict[str, Any] = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if f.metadata.get("omitempty") and not item:
                continue
            payload[f.name] = _to_payload(item)
        return payload
    if isinstance(value, (list, tuple)):
        return [_to_payload(item) for item in value]
    return value


def _split_ids(value: str) -> list[str]:
    return [item for item in value.split(RECEIVER_SEPARATOR) if item] if value else []


def parse_errcode(data: dict[str, Any], operation: str) -> int:
    """Read the errcode of a decoded API response, defaulting to 0."""
    try:
        return int(data.get("errcode", 0))
    except (TypeError, ValueError) as exc:
        raise TransportError(
            f"{operation} result decode error: invalid errcode {data.get('errcode')!r}"
        ) from exc


# ---------------------------------------------------------------------------
# Receiver and options
# ---------------------------------------------------------------------------


@dataclass
class MessageReceiver:
    """Addressing of a message. At least one field must be set.

    Attributes:
        touser: Member ids separated by ``|`` (at most 1000). ``@all`` sends
            to every member who can see the application.
        toparty: Department ids separated by ``|`` (at most 100). Ignored
            when ``touser`` is ``@all``.
        totag: Tag ids separated by ``|`` (at most 100). Ignored when
            ``touser`` is ``@all``.
    """

    touser: str = ""
    toparty: str = ""
    totag: str = ""

    @classmethod
    def of(
        cls,
        users: Iterable[str] = (),
        parties: Iterable[str | int] = (),
        tags: Iterable[str | int] = (),
    ) -> MessageReceiver:
        """Build a receiver from id collections instead of joined strings."""
        return cls(
            touser=RECEIVER_SEPARATOR.join(str(u) for u in users),
            toparty=RECEIVER_SEPARATOR.join(str(p) for p in parties),
            totag=RECEIVER_SEPARATOR.join(str(t) for t in tags),
        )

    @classmethod
    def everyone(cls) -> MessageReceiver:
        """Receiver addressing every member in the application's visible range."""
        return cls(touser="@all")

    def is_empty(self) -> bool:
        return not (self.touser or self.toparty or self.totag)

    def to_dict(self) -> dict[str, str]:
        return {"touser": self.touser, "toparty": self.toparty, "totag": self.totag}


@dataclass
class MessageOptions:
    """Per-send flags. Some message types only honour a subset of them.

    Attributes:
        safe: Send as a confidential message.
        enable_id_trans: Enable id translation in supported fields.
        enable_duplicate_check: Ask the server to drop duplicate messages.
        duplicate_check_interval: Duplicate check window in seconds. Only
            sent when the check is enabled; 0 keeps the server default of
            1800 seconds, the maximum is 4 hours.
    """

    safe: bool = False
    enable_id_trans: bool = False
    enable_duplicate_check: bool = False
    duplicate_check_interval: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.duplicate_check_interval <= MAX_DUPLICATE_CHECK_INTERVAL:
            raise ValidationError(
                "duplicate_check_interval must be between 0 and "
                f"{MAX_DUPLICATE_CHECK_INTERVAL} seconds, got {self.duplicate_check_interval}"
            )

    def apply(self, envelope: dict[str, Any]) -> None:
        """Write the enabled flags into a message envelope."""
        if self.safe:
            envelope["safe"] = 1
        if self.enable_id_trans:
            envelope["enable_id_trans"] = 1
        if self.enable_duplicate_check:
            envelope["enable_duplicate_check"] = 1
            if self.duplicate_check_interval:
                envelope["duplicate_check_interval"] = self.duplicate_check_interval


# ---------------------------------------------------------------------------
# Message variants
# ---------------------------------------------------------------------------


class _MessagePayload:
    """Shared serialization for message variants."""

    msgtype: ClassVar[str]

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON object stored under the ``msgtype`` key."""
        return _to_payload(self)


@dataclass
class Text(_MessagePayload):
    """Text message. ``content`` is truncated by the server past 2048 bytes."""

    msgtype: ClassVar[str] = "text"

    content: str


@dataclass
class Image(_MessagePayload):
    """Image message referencing an uploaded temporary media id."""

    msgtype: ClassVar[str] = "image"

    media_id: str


@dataclass
class Voice(_MessagePayload):
    """Voice message referencing an uploaded temporary media id."""

    msgtype: ClassVar[str] = "voice"

    media_id: str


@dataclass
class Video(_MessagePayload):
    """Video message.

    Attributes:
        media_id: Uploaded video media id.
        title: Optional title, at most 128 bytes.
        description: Optional description, at most 512 bytes.
    """

    msgtype: ClassVar[str] = "video"

    media_id: str
    title: str = _omitempty()
    description: str = _omitempty()


@dataclass
class File(_MessagePayload):
    """File message referencing an uploaded temporary media id."""

    msgtype: ClassVar[str] = "file"

    media_id: str


@dataclass
class TextCard(_MessagePayload):
    """Text card message.

    Attributes:
        title: At most 128 bytes.
        description: At most 512 bytes, supports simple HTML.
        url: Link opened when the card is clicked.
        btntxt: Optional button text (server default "详情"), at most 4 characters.
    """

    msgtype: ClassVar[str] = "textcard"

    title: str
    description: str
    url: str
    btntxt: str = _omitempty()


@dataclass
class NewsArticle:
    """A single article of a ``News`` message."""

    title: str
    url: str
    description: str = _omitempty()
    picurl: str = _omitempty()


@dataclass
class News(_MessagePayload):
    """News message with 1 to 8 linked articles."""

    msgtype: ClassVar[str] = "news"

    articles: list[NewsArticle] = field(default_factory=list)


@dataclass
class MpNewsArticle:
    """A single article of an ``MpNews`` message, stored on the WeCom side.

    Attributes:
        title: At most 128 bytes.
        thumb_media_id: Media id of the thumbnail image.
        content: Article body, HTML allowed, at most 666 KB.
        author: Optional author, at most 64 bytes.
        content_source_url: Optional "read more" link.
        digest: Optional summary, at most 512 bytes.
    """

    title: str
    thumb_media_id: str
    content: str
    author: str = _omitempty()
    content_source_url: str = _omitempty()
    digest: str = _omitempty()


@dataclass
class MpNews(_MessagePayload):
    """Rich news message whose article bodies are hosted by WeCom.

    Each send is counted as a distinct article set for read statistics.
    """

    msgtype: ClassVar[str] = "mpnews"

    articles: list[MpNewsArticle] = field(default_factory=list)


@dataclass
class Markdown(_MessagePayload):
    """Markdown message, UTF-8, at most 2048 bytes."""

    msgtype: ClassVar[str] = "markdown"

    content: str


@dataclass
class MiniProgramContentItem:
    key: str
    value: str


@dataclass
class MiniProgramNotice(_MessagePayload):
    """Mini-program notice. Only mini-program applications may send it,
    and ``@all`` receivers are not supported.

    Attributes:
        appid: Mini-program appid bound to the application.
        title: 4 to 12 Chinese characters.
        page: Optional page opened on click.
        description: Optional, 4 to 12 Chinese characters.
        emphasis_first_item: Optionally enlarge the first content item.
        content_item: Optional key/value rows, at most 10.
    """

    msgtype: ClassVar[str] = "miniprogram_notice"

    appid: str
    title: str
    page: str = _omitempty()
    description: str = _omitempty()
    emphasis_first_item: bool = _omitempty(False)
    content_item: list[MiniProgramContentItem] = _omitempty([])


@dataclass
class TaskCardButton:
    """Task card button.

    Attributes:
        key: Callback key, letters, digits and ``_-@.``, at most 128 bytes.
        name: Button label.
        replace_name: Optional label shown after the click (server default "已处理").
        color: Optional, ``red`` or ``blue`` (default).
        is_bold: Optional bold label.
    """

    key: str
    name: str
    replace_name: str = _omitempty()
    color: str = _omitempty()
    is_bold: bool = _omitempty(False)


@dataclass
class TaskCard(_MessagePayload):
    """Task card message with one or two buttons (client 2.8.2 and later).

    ``task_id`` must be unique per application, letters, digits and
    ``_-@.``, at most 128 bytes.
    """

    msgtype: ClassVar[str] = "taskcard"

    title: str
    description: str
    task_id: str
    btn: list[TaskCardButton] = field(default_factory=list)
    url: str = _omitempty()


Message = Union[
    Text,
    Image,
    Voice,
    Video,
    File,
    TextCard,
    News,
    MpNews,
    Markdown,
    MiniProgramNotice,
    TaskCard,
]

MESSAGE_CLASSES: tuple[type[_MessagePayload], ...] = (
    Text,
    Image,
    Voice,
    Video,
    File,
    TextCard,
    News,
    MpNews,
    Markdown,
    MiniProgramNotice,
    TaskCard,
)

MESSAGE_TYPES: dict[str, type[_MessagePayload]] = {cls.msgtype: cls for cls in MESSAGE_CLASSES}


def message_type_of(message: object) -> str:
    """Return the ``msgtype`` discriminator of a known message variant.

    Raises:
        UnrecognizedMessageTypeError: If ``message`` is outside the closed set.
    """
    if not isinstance(message, MESSAGE_CLASSES):
        raise UnrecognizedMessageTypeError(message)
    return message.msgtype


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class MessageResult:
    """Result of a message send.

    When some receivers are out of the application's visible range or do
    not exist the message is still delivered to the others and the
    ``invalid*`` fields list the dropped ones. If every receiver is invalid
    the call fails with errcode 81013. Returned user ids are lower-cased.

    Attributes:
        errcode: 0 when the whole request succeeded.
        errmsg: Error message from the server.
        invaliduser: Invalid member ids, ``|`` separated.
        invalidparty: Invalid department ids, ``|`` separated.
        invalidtag: Invalid tag ids, ``|`` separated.
        msgid: Message id, usable for recalling the message.
        response_code: Task card update code, only for interactive cards.
    """

    errcode: int = 0
    errmsg: str = ""
    invaliduser: str = ""
    invalidparty: str = ""
    invalidtag: str = ""
    msgid: str = ""
    response_code: str = ""

    @classmethod
    def from_response(
        cls, data: dict[str, Any], operation: str = "send message"
    ) -> MessageResult:
        return cls(
            errcode=parse_errcode(data, operation),
            errmsg=str(data.get("errmsg", "")),
            invaliduser=str(data.get("invaliduser") or ""),
            invalidparty=str(data.get("invalidparty") or ""),
            invalidtag=str(data.get("invalidtag") or ""),
            msgid=str(data.get("msgid") or ""),
            response_code=str(data.get("response_code") or ""),
        )

    @property
    def ok(self) -> bool:
        return self.errcode == 0

    @property
    def invalid_users(self) -> list[str]:
        return _split_ids(self.invaliduser)

    @property
    def invalid_parties(self) -> list[str]:
        return _split_ids(self.invalidparty)

    @property
    def invalid_tags(self) -> list[str]:
        return _split_ids(self.invalidtag)

    @property
    def has_invalid_receivers(self) -> bool:
        return bool(self.invaliduser or self.invalidparty or self.invalidtag)

    def raise_for_error(self) -> MessageResult:
        """Raise RemoteAPIError if errcode is non-zero, else return self."""
        if not self.ok:
            raise RemoteAPIError(self.errcode, self.errmsg)
        return self


@dataclass
class UploadMedia:
    """A local file to upload as temporary media.

    Attributes:
        type: One of ``image``, ``voice``, ``video`` or ``file``.
        path: Path of the local file.
    """

    type: MediaType
    path: str


@dataclass
class UploadMediaResult:
    """Result of a temporary media upload. ``media_id`` is valid for 3 days."""

    errcode: int = 0
    errmsg: str = ""
    type: str = ""
    media_id: str = ""
    created_at: str = ""

    @classmethod
    def from_response(
        cls, data: dict[str, Any], operation: str = "upload media"
    ) -> UploadMediaResult:
        return cls(
            errcode=parse_errcode(data, operation),
            errmsg=str(data.get("errmsg", "")),
            type=str(data.get("type") or ""),
            media_id=str(data.get("media_id") or ""),
            created_at=str(data.get("created_at") or ""),
        )

    @property
    def ok(self) -> bool:
        return self.errcode == 0

    def raise_for_error(self) -> UploadMediaResult:
        """Raise RemoteAPIError if errcode is non-zero, else return self."""
        if not self.ok:
            raise RemoteAPIError(self.errcode, self.errmsg)
        return self


# ---------------------------------------------------------------------------
# Token cache record
# ---------------------------------------------------------------------------


class TokenState(BaseModel):
    """Access token with its absolute expiry, as kept in memory and on disk.

    ``corp_id`` and ``agent_id`` record which application the token belongs
    to; the application secret is never part of this record.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_expires_at: int = Field(..., description="Unix timestamp (seconds) of expiry")
    corp_id: str = ""
    agent_id: int = 0

    def is_valid(self, now: float | None = None) -> bool:
        """A token is usable only while ``now`` is strictly before expiry."""
        if now is None:
            now = time.time()
        return bool(self.access_token) and now < self.token_expires_at

    def expires_in(self, now: float | None = None) -> int:
        """Seconds left before expiry, never negative."""
        if now is None:
            now = time.time()
        return max(0, int(self.token_expires_at - now))
