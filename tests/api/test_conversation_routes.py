"""API tests for conversation endpoints."""

from datetime import timedelta

import pytest

from conversations.contact import ChatType
from tests.fixtures.entities import BASE_TIME, create_contact, create_message


@pytest.fixture
def populated(client_with_coordinator):
    """Client plus a coordinator with two conversations."""
    client, coordinator, clock = client_with_coordinator
    coordinator.add_contact(create_contact(id="contact-2", name="Dana Reyes", type=ChatType.TEAM))
    first = coordinator.start_conversation("contact-1")
    second = coordinator.start_conversation("contact-2")
    coordinator.store_incoming(
        create_message(id="m1", conversation_id=first.id, timestamp=BASE_TIME)
    )
    coordinator.store_incoming(
        create_message(
            id="m2",
            conversation_id=second.id,
            sender="Dana Reyes",
            timestamp=BASE_TIME + timedelta(minutes=5),
        )
    )
    return client, coordinator, first, second


class TestConversationList:
    def test_list_most_recent_first(self, populated):
        client, _, first, second = populated

        response = client.get("/conversations")

        body = response.json()
        assert response.status_code == 200
        assert [c["id"] for c in body["conversations"]] == [second.id, first.id]
        assert body["total_unread"] == 2
        assert body["active_filter_count"] == 0
        assert body["groups"] == {"Active": [first.id], "Others": [second.id]}

    def test_query_with_filters(self, populated):
        client, _, first, _ = populated

        response = client.post(
            "/conversations/query", json={"chat_type": "client", "search_text": ""}
        )

        body = response.json()
        assert [c["id"] for c in body["conversations"]] == [first.id]
        assert body["active_filter_count"] == 1

    def test_query_rejects_naive_date(self, populated):
        client, _, _, _ = populated

        response = client.post(
            "/conversations/query", json={"date_range": {"start": "2025-01-01T00:00:00"}}
        )

        assert response.status_code == 422

    def test_start_conversation(self, client_with_coordinator):
        client, _, _ = client_with_coordinator

        response = client.post(
            "/conversations", json={"contact_id": "contact-1", "conversation_id": "srv-1"}
        )

        assert response.status_code == 201
        assert response.json()["data"]["id"] == "srv-1"
        assert response.json()["data"]["last_message"] is None


class TestConversationMessages:
    def test_grouped_messages(self, populated):
        client, coordinator, first, _ = populated
        coordinator.store_incoming(
            create_message(
                id="m3", conversation_id=first.id, timestamp=BASE_TIME + timedelta(seconds=30)
            )
        )

        response = client.get(f"/conversations/{first.id}/messages")

        body = response.json()
        assert body["total_count"] == 2
        assert body["unread_count"] == 2
        assert body["groups"][0]["date"] == "2025-01-15"
        rows = body["groups"][0]["messages"]
        assert [r["id"] for r in rows] == ["m1", "m3"]
        assert [r["is_sequential"] for r in rows] == [False, True]

    def test_timezone_offset(self, populated):
        client, _, first, _ = populated

        response = client.get(
            f"/conversations/{first.id}/messages", params={"tz_offset_minutes": 720}
        )

        assert response.json()["groups"][0]["date"] == "2025-01-16"

    def test_send_and_mark_read(self, populated):
        client, coordinator, first, _ = populated

        sent = client.post(f"/conversations/{first.id}/messages", json={"content": "On it"})
        read = client.post(f"/conversations/{first.id}/read")

        assert sent.json()["data"]["status"] == "sending"
        assert read.json()["data"]["marked_count"] == 1
        assert coordinator.unread_count(first.id) == 0

    def test_empty_send_is_bad_request(self, populated):
        client, _, first, _ = populated

        response = client.post(f"/conversations/{first.id}/messages", json={"content": ""})

        assert response.status_code == 400

    def test_voice_send(self, populated):
        client, _, first, _ = populated

        response = client.post(
            f"/conversations/{first.id}/voice",
            json={"attachment": {"url": "https://files.example.com/v.ogg"}, "duration_seconds": 4},
        )

        assert response.json()["data"]["type"] == "voice"
        assert response.json()["data"]["duration_seconds"] == 4

    def test_unknown_conversation(self, client_with_coordinator):
        client, _, _ = client_with_coordinator

        response = client.get("/conversations/missing/messages")

        assert response.status_code == 404
        assert response.json()["detail"] == "Conversation missing not found"


class TestComposer:
    def test_reply_target(self, populated):
        client, _, first, _ = populated

        client.put(f"/conversations/{first.id}/reply", json={"message_id": "m1"})
        response = client.post(f"/conversations/{first.id}/messages", json={"content": "Sure"})

        assert response.json()["data"]["reply_to"]["message_id"] == "m1"

    def test_reply_target_from_other_conversation_rejected(self, populated):
        client, _, first, _ = populated

        response = client.put(f"/conversations/{first.id}/reply", json={"message_id": "m2"})

        assert response.status_code == 400

    def test_staged_attachment(self, populated):
        client, coordinator, first, _ = populated

        client.put(
            f"/conversations/{first.id}/attachment",
            json={"url": "https://files.example.com/p.png", "mime_type": "image/png"},
        )
        client.delete(f"/conversations/{first.id}/attachment")

        assert coordinator.staged_attachment is None


class TestMetadata:
    def test_tag_assign_pin_status(self, populated):
        client, coordinator, first, _ = populated

        client.post(f"/conversations/{first.id}/tags", json={"tag": "vip"})
        client.put(f"/conversations/{first.id}/assignee", json={"assignee": "sam"})
        pin = client.post(f"/conversations/{first.id}/pin")
        status = client.put(f"/conversations/{first.id}/status", json={"status": "waiting"})

        assert pin.json()["data"]["is_pinned"] is True
        assert status.json()["data"]["status"] == "waiting"
        assert first.tags == {"vip"}
        assert first.assigned_to == "sam"

        client.delete(f"/conversations/{first.id}/tags/vip")
        assert first.tags == set()

    def test_clear_and_delete(self, populated):
        client, coordinator, first, _ = populated

        cleared = client.post(f"/conversations/{first.id}/clear")
        deleted = client.delete(f"/conversations/{first.id}")

        assert cleared.json()["data"]["removed_count"] == 1
        assert deleted.status_code == 200
        assert client.get(f"/conversations/{first.id}").status_code == 404


class TestDisappearing:
    def test_configure_and_read(self, populated):
        client, coordinator, first, _ = populated

        response = client.put(
            f"/conversations/{first.id}/disappearing", json={"enabled": True, "timeout_hours": 1}
        )
        settings = client.get(f"/conversations/{first.id}/disappearing")

        assert response.status_code == 200
        assert settings.json() == {"enabled": True, "timeout_hours": 1}
        assert coordinator.background_sweep_running

        client.put(f"/conversations/{first.id}/disappearing", json={"enabled": False})
        assert not coordinator.background_sweep_running

    def test_zero_timeout_rejected(self, populated):
        client, _, first, _ = populated

        response = client.put(
            f"/conversations/{first.id}/disappearing", json={"enabled": True, "timeout_hours": 0}
        )

        assert response.status_code == 422
