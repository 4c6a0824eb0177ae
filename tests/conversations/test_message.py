"""Unit tests for the message model and its value types."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conversations.errors import InvalidTransitionError
from conversations.message import (
    DocumentBody,
    ImageBody,
    Message,
    MessageStatus,
    MessageType,
    ReplySnapshot,
    TextBody,
    VideoBody,
    body_for_attachment,
)
from tests.fixtures.entities import (
    BASE_TIME,
    VOICE_NOTE,
    create_attachment,
    create_message,
    create_reaction,
)


class TestMessageStatusOrder:
    """Test the forward-only delivery status order."""

    @pytest.mark.parametrize(
        "current,new",
        [
            (MessageStatus.SENDING, MessageStatus.SENT),
            (MessageStatus.SENT, MessageStatus.DELIVERED),
            (MessageStatus.DELIVERED, MessageStatus.READ),
            (MessageStatus.SENDING, MessageStatus.ERROR),
            (MessageStatus.SENDING, MessageStatus.DELIVERED),
            (MessageStatus.SENT, MessageStatus.READ),
        ],
    )
    def test_forward_steps_allowed(self, current, new):
        """Verify forward steps, including skipped ones, are legal."""
        assert current.can_advance_to(new)

    @pytest.mark.parametrize(
        "current,new",
        [
            (MessageStatus.READ, MessageStatus.DELIVERED),
            (MessageStatus.DELIVERED, MessageStatus.SENT),
            (MessageStatus.SENT, MessageStatus.SENDING),
            (MessageStatus.SENT, MessageStatus.ERROR),
            (MessageStatus.ERROR, MessageStatus.SENT),
            (MessageStatus.ERROR, MessageStatus.SENDING),
        ],
    )
    def test_backward_and_terminal_steps_rejected(self, current, new):
        assert not current.can_advance_to(new)

    def test_same_status_is_not_a_transition(self):
        for status in MessageStatus:
            assert not status.can_advance_to(status)


class TestMessageAdvanceStatus:
    """Test Message.advance_status."""

    def test_advance_changes_status(self):
        message = create_message(status=MessageStatus.SENT, is_outbound=True)

        assert message.advance_status(MessageStatus.DELIVERED) is True
        assert message.status == MessageStatus.DELIVERED

    def test_repeat_status_is_noop(self):
        message = create_message(status=MessageStatus.DELIVERED)

        assert message.advance_status(MessageStatus.DELIVERED) is False
        assert message.status == MessageStatus.DELIVERED

    def test_backward_raises_and_keeps_status(self):
        message = create_message(status=MessageStatus.READ)

        with pytest.raises(InvalidTransitionError) as exc_info:
            message.advance_status(MessageStatus.SENT)

        assert message.status == MessageStatus.READ
        assert exc_info.value.to_dict() == {
            "message_id": "msg-1",
            "current_status": "read",
            "requested_status": "sent",
        }

    def test_accepts_raw_status_value(self):
        message = create_message(status=MessageStatus.SENDING, is_outbound=True)

        message.advance_status("sent")

        assert message.status == MessageStatus.SENT


class TestMessageValidation:
    """Test field validation and immutability."""

    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            create_message(timestamp=datetime(2025, 1, 15, 12, 0))

    def test_timestamp_normalized_to_utc(self):
        local = datetime(2025, 1, 15, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        message = create_message(timestamp=local)

        assert message.timestamp == BASE_TIME
        assert message.timestamp.tzinfo == timezone.utc

    def test_content_is_frozen(self):
        message = create_message()

        with pytest.raises(ValidationError):
            message.content = "edited"

    def test_status_is_mutable(self):
        message = create_message()

        message.status = MessageStatus.READ

        assert message.status == MessageStatus.READ

    def test_body_validated_from_discriminator(self):
        message = Message.model_validate(
            {
                "id": "msg-9",
                "conversation_id": "conv-1",
                "timestamp": "2025-01-15T12:00:00Z",
                "is_outbound": False,
                "sender": "Alice Johnson",
                "body": {
                    "type": "voice",
                    "attachment": {"url": "https://files.example.com/a.ogg"},
                    "duration_seconds": 3,
                },
            }
        )

        assert message.type == MessageType.VOICE
        assert message.body.duration_seconds == 3

    def test_voice_body_requires_duration(self):
        with pytest.raises(ValidationError):
            Message.model_validate(
                {
                    "id": "msg-9",
                    "conversation_id": "conv-1",
                    "timestamp": "2025-01-15T12:00:00Z",
                    "is_outbound": False,
                    "sender": "Alice Johnson",
                    "body": {
                        "type": "voice",
                        "attachment": {"url": "https://files.example.com/a.ogg"},
                    },
                }
            )


class TestMessageProperties:
    def test_is_unread_only_for_inbound_not_read(self):
        assert create_message(status=MessageStatus.DELIVERED).is_unread
        assert not create_message(status=MessageStatus.READ).is_unread
        assert not create_message(is_outbound=True, status=MessageStatus.SENT).is_unread

    def test_attachment_comes_from_body(self):
        attachment = create_attachment()

        message = create_message(attachment=attachment)

        assert message.type == MessageType.IMAGE
        assert message.attachment == attachment
        assert create_message().attachment is None

    def test_sort_key_breaks_ties_by_sequence(self):
        first = create_message(id="a", sequence=1)
        second = create_message(id="b", sequence=2)

        assert first.sort_key < second.sort_key

    def test_to_dict_includes_voice_duration(self):
        result = VOICE_NOTE.to_dict()

        assert result["type"] == "voice"
        assert result["duration_seconds"] == 12.5
        assert result["attachment"]["mime_type"] == "audio/ogg"


class TestBodyForAttachment:
    """Test body variant inference from MIME type."""

    def test_no_attachment_is_text(self):
        assert isinstance(body_for_attachment(None), TextBody)

    def test_image(self):
        assert isinstance(body_for_attachment(create_attachment("image/png")), ImageBody)

    def test_video(self):
        assert isinstance(body_for_attachment(create_attachment("video/mp4")), VideoBody)

    @pytest.mark.parametrize("mime_type", ["application/pdf", "audio/mpeg", None])
    def test_everything_else_is_document(self, mime_type):
        attachment = create_attachment(mime_type=mime_type, filename="file.bin")

        assert isinstance(body_for_attachment(attachment), DocumentBody)


class TestReactions:
    """Test one-reaction-per-user semantics."""

    def test_second_reaction_from_same_user_replaces_first(self):
        message = create_message()

        message.set_reaction(create_reaction("👍"))
        message.set_reaction(create_reaction("❤️"))

        assert [r.emoji for r in message.reactions] == ["❤️"]

    def test_reactions_from_different_users_accumulate(self):
        message = create_message()

        message.set_reaction(create_reaction("👍", user_id="u1"))
        message.set_reaction(create_reaction("😂", user_id="u2"))

        assert {r.user_id for r in message.reactions} == {"u1", "u2"}

    def test_drop_reaction(self):
        message = create_message()
        message.set_reaction(create_reaction(user_id="u1"))

        assert message.drop_reaction("u1") is True
        assert message.drop_reaction("u1") is False
        assert message.reactions == []

    def test_empty_emoji_rejected(self):
        with pytest.raises(ValidationError):
            create_reaction(emoji="")


class TestReplySnapshot:
    def test_snapshot_copies_message_fields(self):
        original = create_message(content="Where are you?")

        snapshot = ReplySnapshot.of(original)

        assert snapshot.message_id == "msg-1"
        assert snapshot.sender == "Alice Johnson"
        assert snapshot.content == "Where are you?"
        assert snapshot.type == MessageType.TEXT

    def test_snapshot_is_frozen(self):
        snapshot = ReplySnapshot.of(create_message())

        with pytest.raises(ValidationError):
            snapshot.content = "changed"
