"""
Tests for the HTTP endpoints.

Tests cover:
- Identity via X-User-Id
- Sending, listing, fetching, deleting and clearing through the API
- Health and metrics endpoints
"""

import pytest
from fastapi.testclient import TestClient

from inbox_api.main import app
from inbox_api.storage import SessionLocal, Base, engine, create_user, get_user_by_id


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def alice_and_bob(client):
    """Two users, returned as (alice_id, bob_id)."""
    with SessionLocal() as session:
        alice = create_user(session, name="Alice", username="alice")
        bob = create_user(session, name="Bob", username="bob", email="bob@example.com")
        return alice.id, bob.id


def as_user(user_id):
    return {"X-User-Id": user_id}


def send(client, sender_id, receiver_id, text):
    response = client.post(
        "/members/send-private-message",
        json={"message": text, "toUserId": receiver_id},
        headers=as_user(sender_id),
    )
    assert response.status_code == 201
    return response.json()["message"]


class TestIdentity:

    def test_missing_header(self, client):
        response = client.get("/inbox/messages")

        assert response.status_code == 401

    def test_unknown_user(self, client):
        response = client.get("/inbox/messages", headers=as_user("nobody"))

        assert response.status_code == 401


class TestSendEndpoint:

    def test_send(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob

        message = send(client, alice_id, bob_id, "hi bob")

        assert message["ownerId"] == alice_id
        assert message["uuid"] == bob_id
        assert message["sent"] is True
        assert message["text"] == "hi bob"
        assert "_id" in message

    def test_unknown_receiver(self, client, alice_and_bob):
        alice_id, _ = alice_and_bob

        response = client.post(
            "/members/send-private-message",
            json={"message": "hi", "toUserId": "nobody"},
            headers=as_user(alice_id),
        )

        assert response.status_code == 404

    def test_blank_message_rejected(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob

        response = client.post(
            "/members/send-private-message",
            json={"message": "   ", "toUserId": bob_id},
            headers=as_user(alice_id),
        )

        assert response.status_code == 422

    def test_missing_receiver_rejected(self, client, alice_and_bob):
        alice_id, _ = alice_and_bob

        response = client.post(
            "/members/send-private-message",
            json={"message": "hi"},
            headers=as_user(alice_id),
        )

        assert response.status_code == 422


class TestInboxEndpoints:

    def test_both_inboxes_see_message(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        send(client, alice_id, bob_id, "hello")

        alice_inbox = client.get("/inbox/messages", headers=as_user(alice_id)).json()
        bob_inbox = client.get("/inbox/messages", headers=as_user(bob_id)).json()

        assert len(alice_inbox) == 1
        assert len(bob_inbox) == 1
        # Sent messages are shown from the sender's side
        assert alice_inbox[0]["toUUID"] == bob_id
        assert alice_inbox[0]["uuid"] == alice_id
        assert bob_inbox[0]["uuid"] == alice_id
        assert bob_inbox[0]["sent"] is False

    def test_pagination(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        for i in range(12):
            send(client, bob_id, alice_id, f"msg {i}")

        page0 = client.get("/inbox/messages", params={"page": 0}, headers=as_user(alice_id)).json()
        page1 = client.get("/inbox/messages", params={"page": 1}, headers=as_user(alice_id)).json()
        everything = client.get("/inbox/messages", headers=as_user(alice_id)).json()

        assert len(page0) == 10
        assert len(page1) == 2
        assert len(everything) == 12

    def test_negative_page_rejected(self, client, alice_and_bob):
        alice_id, _ = alice_and_bob

        response = client.get("/inbox/messages", params={"page": -1}, headers=as_user(alice_id))

        assert response.status_code == 422

    def test_conversation_filter(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        send(client, alice_id, bob_id, "to bob")
        send(client, alice_id, alice_id, "to self")

        response = client.get(
            "/inbox/messages",
            params={"conversation": alice_id},
            headers=as_user(alice_id),
        )

        assert [m["text"] for m in response.json()] == ["to self"]

    def test_conversations(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        send(client, alice_id, bob_id, "one")
        send(client, bob_id, alice_id, "two")

        response = client.get("/inbox/conversations", headers=as_user(alice_id))

        assert response.status_code == 200
        [conversation] = response.json()
        assert conversation["uuid"] == bob_id
        assert conversation["count"] == 2
        assert conversation["text"] == "two"
        assert conversation["username"] == "bob"
        assert "userStyles" in conversation

    def test_get_single_message(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        message = send(client, alice_id, bob_id, "hello")

        response = client.get(f"/inbox/messages/{message['_id']}", headers=as_user(alice_id))

        assert response.status_code == 200
        assert response.json()["text"] == "hello"

    def test_get_other_users_message(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        message = send(client, alice_id, bob_id, "hello")

        response = client.get(f"/inbox/messages/{message['_id']}", headers=as_user(bob_id))

        assert response.status_code == 404

    def test_delete_message(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        message = send(client, alice_id, bob_id, "hello")

        response = client.delete(f"/inbox/messages/{message['_id']}", headers=as_user(alice_id))

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/inbox/messages", headers=as_user(alice_id)).json() == []
        assert len(client.get("/inbox/messages", headers=as_user(bob_id)).json()) == 1

    def test_delete_unknown_message(self, client, alice_and_bob):
        alice_id, _ = alice_and_bob

        response = client.delete("/inbox/messages/missing", headers=as_user(alice_id))

        assert response.status_code == 404

    def test_clear(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        send(client, alice_id, bob_id, "one")
        send(client, alice_id, bob_id, "two")

        response = client.delete("/inbox/clear", headers=as_user(bob_id))

        assert response.status_code == 200
        assert client.get("/inbox/messages", headers=as_user(bob_id)).json() == []
        assert len(client.get("/inbox/messages", headers=as_user(alice_id)).json()) == 2
        with SessionLocal() as session:
            assert get_user_by_id(session, bob_id).inbox_new_messages == 0


class TestOperationalEndpoints:

    def test_health_live(self, client):
        assert client.get("/health/live").json() == {"status": "ok", "reason": None}

    def test_health_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_metrics(self, client, alice_and_bob):
        alice_id, bob_id = alice_and_bob
        send(client, alice_id, bob_id, "hello")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "private_messages_total" in response.text
        assert "http_requests_total" in response.text

    def test_request_id_header(self, client):
        response = client.get("/health/live")

        assert "x-request-id" in response.headers
