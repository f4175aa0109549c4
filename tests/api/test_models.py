"""Tests for message variants, envelope construction and result records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import pytest

from wecom_notify.api.message import build_envelope
from wecom_notify.api.models import (
    MESSAGE_TYPES,
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
    TokenState,
    UploadMediaResult,
    Video,
    Voice,
    message_type_of,
)
from wecom_notify.exceptions import (
    RemoteAPIError,
    TransportError,
    UnrecognizedMessageTypeError,
    ValidationError,
)

AGENT_ID = 1000002

# ==============================================================================
# Receiver Tests
# ==============================================================================


class TestMessageReceiver:
    """Tests for MessageReceiver."""

    def test_default_is_empty(self):
        assert MessageReceiver().is_empty() is True

    @pytest.mark.parametrize(
        "receiver",
        [
            MessageReceiver(touser="zhangsan"),
            MessageReceiver(toparty="2"),
            MessageReceiver(totag="7"),
        ],
    )
    def test_any_field_makes_receiver_non_empty(self, receiver):
        assert receiver.is_empty() is False

    def test_of_joins_ids_with_pipe(self):
        """Test building a receiver from id collections."""
        receiver = MessageReceiver.of(users=["a", "b"], parties=[1, 2], tags=[])

        assert receiver.to_dict() == {"touser": "a|b", "toparty": "1|2", "totag": ""}

    def test_everyone(self):
        assert MessageReceiver.everyone().touser == "@all"


# ==============================================================================
# Options Tests
# ==============================================================================


class TestMessageOptions:
    """Tests for MessageOptions flag application."""

    def test_defaults_add_nothing(self):
        envelope: dict = {}
        MessageOptions().apply(envelope)

        assert envelope == {}

    def test_each_flag_applies_independently(self):
        envelope: dict = {}
        MessageOptions(safe=True, enable_id_trans=True).apply(envelope)

        assert envelope == {"safe": 1, "enable_id_trans": 1}

    def test_interval_ignored_when_duplicate_check_disabled(self):
        """Test the interval is only attached when the check is on."""
        envelope: dict = {}
        MessageOptions(enable_duplicate_check=False, duplicate_check_interval=900).apply(envelope)

        assert "duplicate_check_interval" not in envelope
        assert "enable_duplicate_check" not in envelope

    def test_interval_attached_when_duplicate_check_enabled(self):
        envelope: dict = {}
        MessageOptions(enable_duplicate_check=True, duplicate_check_interval=900).apply(envelope)

        assert envelope == {"enable_duplicate_check": 1, "duplicate_check_interval": 900}

    def test_zero_interval_keeps_server_default(self):
        envelope: dict = {}
        MessageOptions(enable_duplicate_check=True).apply(envelope)

        assert envelope == {"enable_duplicate_check": 1}

    @pytest.mark.parametrize("interval", [-1, 14401])
    def test_interval_out_of_range_rejected(self, interval):
        with pytest.raises(ValidationError, match="duplicate_check_interval"):
            MessageOptions(enable_duplicate_check=True, duplicate_check_interval=interval)

    def test_interval_upper_bound_allowed(self):
        assert MessageOptions(duplicate_check_interval=14400).duplicate_check_interval == 14400


# ==============================================================================
# Message Variant Tests
# ==============================================================================


class TestMessageVariants:
    """Tests for the closed set of message variants."""

    @pytest.mark.parametrize(
        ("message", "msgtype"),
        [
            (Text(content="hi"), "text"),
            (Image(media_id="m"), "image"),
            (Voice(media_id="m"), "voice"),
            (Video(media_id="m"), "video"),
            (File(media_id="m"), "file"),
            (TextCard(title="t", description="d", url="https://x"), "textcard"),
            (News(articles=[NewsArticle(title="t", url="https://x")]), "news"),
            (MpNews(articles=[MpNewsArticle(title="t", thumb_media_id="m", content="c")]), "mpnews"),
            (Markdown(content="**hi**"), "markdown"),
            (MiniProgramNotice(appid="wx1", title="title"), "miniprogram_notice"),
            (TaskCard(title="t", description="d", task_id="1"), "taskcard"),
        ],
    )
    def test_discriminator(self, message, msgtype):
        assert message_type_of(message) == msgtype
        assert MESSAGE_TYPES[msgtype] is type(message)

    def test_registry_covers_every_variant(self):
        assert set(MESSAGE_TYPES) == {
            "text",
            "image",
            "voice",
            "video",
            "file",
            "textcard",
            "news",
            "mpnews",
            "markdown",
            "miniprogram_notice",
            "taskcard",
        }

    @pytest.mark.parametrize("value", [{"content": "hi"}, "hi", 42, object()])
    def test_unknown_values_rejected(self, value):
        with pytest.raises(UnrecognizedMessageTypeError):
            message_type_of(value)

    def test_lookalike_with_msgtype_attribute_rejected(self):
        """Test duck-typed objects outside the closed set are not accepted."""

        @dataclass
        class Custom:
            msgtype: ClassVar[str] = "text"
            content: str = "hi"

        with pytest.raises(UnrecognizedMessageTypeError, match="Custom"):
            message_type_of(Custom())

    def test_optional_fields_omitted_when_empty(self):
        assert Video(media_id="m").to_payload() == {"media_id": "m"}
        assert TextCard(title="t", description="d", url="u").to_payload() == {
            "title": "t",
            "description": "d",
            "url": "u",
        }

    def test_optional_fields_included_when_set(self):
        payload = Video(media_id="m", title="T", description="D").to_payload()

        assert payload == {"media_id": "m", "title": "T", "description": "D"}

    def test_news_articles_serialized(self):
        payload = News(
            articles=[
                NewsArticle(title="a", url="https://a", picurl="https://a.png"),
                NewsArticle(title="b", url="https://b", description="second"),
            ]
        ).to_payload()

        assert payload == {
            "articles": [
                {"title": "a", "url": "https://a", "picurl": "https://a.png"},
                {"title": "b", "url": "https://b", "description": "second"},
            ]
        }

    def test_miniprogram_notice_serialized(self):
        payload = MiniProgramNotice(
            appid="wx1",
            title="Meeting",
            page="pages/index",
            emphasis_first_item=True,
            content_item=[MiniProgramContentItem(key="Room", value="A-101")],
        ).to_payload()

        assert payload == {
            "appid": "wx1",
            "title": "Meeting",
            "page": "pages/index",
            "emphasis_first_item": True,
            "content_item": [{"key": "Room", "value": "A-101"}],
        }

    def test_miniprogram_notice_without_items_omits_them(self):
        payload = MiniProgramNotice(appid="wx1", title="Meeting").to_payload()

        assert payload == {"appid": "wx1", "title": "Meeting"}

    def test_taskcard_buttons_serialized(self):
        payload = TaskCard(
            title="Approve",
            description="Leave request",
            task_id="task-1",
            url="https://x",
            btn=[
                TaskCardButton(key="yes", name="Approve", color="red", is_bold=True),
                TaskCardButton(key="no", name="Reject"),
            ],
        ).to_payload()

        assert payload["btn"] == [
            {"key": "yes", "name": "Approve", "color": "red", "is_bold": True},
            {"key": "no", "name": "Reject"},
        ]
        assert payload["task_id"] == "task-1"
        assert payload["url"] == "https://x"


# ==============================================================================
# Envelope Tests
# ==============================================================================


class TestBuildEnvelope:
    """Tests for build_envelope."""

    def test_text_envelope(self):
        envelope = build_envelope(AGENT_ID, MessageReceiver(touser="zhangsan"), Text(content="hi"))

        assert envelope == {
            "touser": "zhangsan",
            "toparty": "",
            "totag": "",
            "agentid": AGENT_ID,
            "msgtype": "text",
            "text": {"content": "hi"},
        }

    def test_news_with_two_articles(self):
        news = News(
            articles=[
                NewsArticle(title="a", url="https://a"),
                NewsArticle(title="b", url="https://b"),
            ]
        )

        envelope = build_envelope(AGENT_ID, MessageReceiver(toparty="1"), news)

        assert envelope["msgtype"] == "news"
        assert len(envelope["news"]["articles"]) == 2

    def test_options_merged(self):
        envelope = build_envelope(
            AGENT_ID,
            MessageReceiver(totag="3"),
            Markdown(content="x"),
            MessageOptions(safe=True, enable_duplicate_check=True, duplicate_check_interval=600),
        )

        assert envelope["safe"] == 1
        assert envelope["enable_duplicate_check"] == 1
        assert envelope["duplicate_check_interval"] == 600
        assert "enable_id_trans" not in envelope

    def test_disabled_duplicate_check_drops_interval(self):
        envelope = build_envelope(
            AGENT_ID,
            MessageReceiver(touser="a"),
            Text(content="x"),
            MessageOptions(enable_duplicate_check=False, duplicate_check_interval=900),
        )

        assert "duplicate_check_interval" not in envelope

    def test_none_message_rejected(self):
        with pytest.raises(ValidationError, match="message can not be None"):
            build_envelope(AGENT_ID, MessageReceiver(touser="a"), None)

    def test_empty_receiver_rejected(self):
        with pytest.raises(ValidationError, match="receiver not set"):
            build_envelope(AGENT_ID, MessageReceiver(), Text(content="x"))

    def test_unknown_message_rejected(self):
        with pytest.raises(UnrecognizedMessageTypeError, match="dict"):
            build_envelope(AGENT_ID, MessageReceiver(touser="a"), {"content": "x"})

    def test_unrecognized_type_is_a_validation_error(self):
        assert issubclass(UnrecognizedMessageTypeError, ValidationError)
        assert issubclass(UnrecognizedMessageTypeError, TypeError)


# ==============================================================================
# Result Tests
# ==============================================================================


class TestResults:
    """Tests for MessageResult and UploadMediaResult."""

    def test_message_result_from_response(self):
        result = MessageResult.from_response(
            {
                "errcode": 0,
                "errmsg": "ok",
                "invaliduser": "userid1|userid2",
                "invalidparty": "",
                "invalidtag": "tag1",
                "msgid": "msg-1",
            }
        )

        assert result.ok is True
        assert result.invalid_users == ["userid1", "userid2"]
        assert result.invalid_parties == []
        assert result.invalid_tags == ["tag1"]
        assert result.has_invalid_receivers is True
        assert result.msgid == "msg-1"

    def test_message_result_tolerates_missing_fields(self):
        result = MessageResult.from_response({"errcode": 0, "errmsg": "ok"})

        assert result == MessageResult(errcode=0, errmsg="ok")
        assert result.has_invalid_receivers is False

    def test_raise_for_error(self):
        result = MessageResult(errcode=81013, errmsg="user & party & tag all invalid")

        with pytest.raises(RemoteAPIError) as exc_info:
            result.raise_for_error()

        assert exc_info.value.errcode == 81013

    def test_raise_for_error_returns_self_on_success(self):
        result = MessageResult()

        assert result.raise_for_error() is result

    def test_upload_result_from_response(self):
        result = UploadMediaResult.from_response(
            {
                "errcode": 0,
                "errmsg": "",
                "type": "image",
                "media_id": "1G6nrLmr5EC3MMb_-zK1dDdzmd0p7cNliYu9V5w7o8K0",
                "created_at": "1380000000",
            }
        )

        assert result.ok is True
        assert result.type == "image"
        assert result.created_at == "1380000000"
        assert result.raise_for_error() is result

    def test_numeric_string_errcode_accepted(self):
        assert MessageResult.from_response({"errcode": "0"}).ok is True

    @pytest.mark.parametrize("errcode", [None, "abc", [1]])
    def test_malformed_errcode_raises_transport_error(self, errcode):
        with pytest.raises(TransportError, match="send message result decode error"):
            MessageResult.from_response({"errcode": errcode, "errmsg": "x"})
        with pytest.raises(TransportError, match="upload media result decode error"):
            UploadMediaResult.from_response({"errcode": errcode, "errmsg": "x"})


# ==============================================================================
# TokenState Tests
# ==============================================================================


class TestTokenState:
    """Tests for TokenState validity."""

    def test_valid_strictly_before_expiry(self):
        state = TokenState(access_token="t", token_expires_at=1000)

        assert state.is_valid(now=999.9) is True
        assert state.is_valid(now=1000) is False
        assert state.is_valid(now=1001) is False

    def test_expires_in_never_negative(self):
        state = TokenState(access_token="t", token_expires_at=1000)

        assert state.expires_in(now=400) == 600
        assert state.expires_in(now=2000) == 0

    def test_json_round_trip_ignores_unknown_fields(self):
        state = TokenState.model_validate_json(
            '{"access_token": "t", "token_expires_at": 1000, "corp_id": "ww1", '
            '"corpsecret": "leaked"}'
        )

        assert state == TokenState(access_token="t", token_expires_at=1000, corp_id="ww1")
        assert "corpsecret" not in state.model_dump()
