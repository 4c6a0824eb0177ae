"""Unit tests for date grouping, sender runs and unread counts."""

from datetime import date, timedelta

from conversations.grouping import (
    compute_unread_count,
    group_by_date,
    is_sequential,
    message_date,
    message_preview,
    sequence_rows,
)
from conversations.message import MessageStatus
from tests.fixtures.entities import (
    BASE_TIME,
    VOICE_NOTE,
    create_attachment,
    create_message,
)


def spread_messages():
    """Messages across three days, deliberately out of date order."""
    offsets = [timedelta(days=1), timedelta(0), timedelta(days=2), timedelta(hours=1)]
    return [
        create_message(id=f"m{i}", timestamp=BASE_TIME + offset)
        for i, offset in enumerate(offsets)
    ]


class TestGroupByDate:
    """Test the date partition."""

    def test_buckets_partition_messages(self):
        messages = spread_messages()

        groups = group_by_date(messages)

        grouped_ids = [m.id for group in groups for m in group.messages]
        assert sum(len(group.rows) for group in groups) == len(messages)
        assert sorted(grouped_ids) == sorted(m.id for m in messages)
        assert len(set(grouped_ids)) == len(grouped_ids)

    def test_buckets_in_ascending_date_order(self):
        groups = group_by_date(spread_messages())

        days = [group.day for group in groups]
        assert days == sorted(days)
        assert days == [date(2025, 1, 15), date(2025, 1, 16), date(2025, 1, 17)]

    def test_bucket_keeps_input_order(self):
        groups = group_by_date(spread_messages())

        assert [m.id for m in groups[0].messages] == ["m1", "m3"]

    def test_empty_input(self):
        assert group_by_date([]) == []

    def test_timezone_offset_moves_day_boundary(self):
        late_evening = create_message(timestamp=BASE_TIME.replace(hour=23, minute=30))

        assert message_date(late_evening) == date(2025, 1, 15)
        assert message_date(late_evening, timedelta(hours=2)) == date(2025, 1, 16)
        assert group_by_date([late_evening], tz_offset=timedelta(hours=2))[0].day == date(
            2025, 1, 16
        )


class TestIsSequential:
    def test_first_message_is_not_sequential(self):
        assert is_sequential(None, create_message()) is False

    def test_same_sender_within_gap(self):
        prev = create_message(id="a")
        curr = create_message(id="b", timestamp=BASE_TIME + timedelta(seconds=59))

        assert is_sequential(prev, curr) is True

    def test_gap_at_threshold_breaks_run(self):
        prev = create_message(id="a")
        curr = create_message(id="b", timestamp=BASE_TIME + timedelta(seconds=60))

        assert is_sequential(prev, curr) is False

    def test_direction_change_breaks_run(self):
        prev = create_message(id="a")
        curr = create_message(id="b", is_outbound=True, sender="Alice Johnson")

        assert is_sequential(prev, curr) is False

    def test_sender_change_breaks_run(self):
        prev = create_message(id="a", sender="Alice Johnson")
        curr = create_message(id="b", sender="Bob")

        assert is_sequential(prev, curr) is False

    def test_custom_threshold(self):
        prev = create_message(id="a")
        curr = create_message(id="b", timestamp=BASE_TIME + timedelta(minutes=4))

        assert is_sequential(prev, curr, gap_threshold_seconds=300) is True


class TestSequenceRows:
    def test_rows_flag_runs(self):
        messages = [
            create_message(id="a"),
            create_message(id="b", timestamp=BASE_TIME + timedelta(seconds=10)),
            create_message(
                id="c", is_outbound=True, timestamp=BASE_TIME + timedelta(seconds=20)
            ),
        ]

        rows = sequence_rows(messages)

        assert [row.is_sequential for row in rows] == [False, True, False]
        assert [row.show_sender for row in rows] == [True, False, True]

    def test_runs_do_not_cross_date_buckets(self):
        before_midnight = create_message(id="a", timestamp=BASE_TIME.replace(hour=23, minute=59, second=50))
        after_midnight = create_message(id="b", timestamp=before_midnight.timestamp + timedelta(seconds=20))

        groups = group_by_date([before_midnight, after_midnight])

        assert len(groups) == 2
        assert groups[1].rows[0].is_sequential is False


class TestUnreadCount:
    def test_counts_inbound_non_read(self):
        messages = [
            create_message(id="a", status=MessageStatus.DELIVERED),
            create_message(id="b", status=MessageStatus.READ),
            create_message(id="c", is_outbound=True, status=MessageStatus.SENT),
            create_message(id="d", status=MessageStatus.SENT),
        ]

        assert compute_unread_count(messages) == 2

    def test_empty(self):
        assert compute_unread_count([]) == 0


class TestMessagePreview:
    def test_text_content(self):
        assert message_preview(create_message(content="See you soon")) == "See you soon"

    def test_captionless_media(self):
        photo = create_message(content="", attachment=create_attachment("image/png"))
        document = create_message(
            content="", attachment=create_attachment("application/pdf", filename="a.pdf")
        )

        assert message_preview(photo) == "Photo"
        assert message_preview(document) == "Document"
        assert message_preview(VOICE_NOTE) == "Voice message"

    def test_caption_wins_over_placeholder(self):
        photo = create_message(content="Look!", attachment=create_attachment())

        assert message_preview(photo) == "Look!"

    def test_no_message(self):
        assert message_preview(None) == ""
