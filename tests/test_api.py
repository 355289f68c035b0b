"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from chatsync.api import app, get_directory, get_orchestrator
from chatsync.store import MemoryKeyPathStore
from chatsync.sync import SyncOrchestrator
from chatsync.user_directory import UserDirectory

ALICE = {"X-User-Email": "a@example.com", "X-User-Name": "Alice"}
BOB = {"X-User-Email": "b@example.com", "X-User-Name": "Bob"}


@pytest.fixture
def client():
    store = MemoryKeyPathStore()
    orchestrator = SyncOrchestrator(store)
    directory = UserDirectory(store)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_directory] = lambda: directory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _start(client, text: str = "hello") -> str:
    response = client.post(
        "/conversations",
        headers=ALICE,
        json={"recipient_email": "b@example.com", "recipient_name": "Bob", "kind": {"kind": "text", "text": text}},
    )
    assert response.status_code == 200
    return response.json()["conversation_id"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestUsers:
    """Test registration and search endpoints."""

    def test_register_and_search(self, client):
        """Test a registered user can be found by prefix."""
        response = client.post("/users", json={"first_name": "Bob", "last_name": "Smith", "email": "b@example.com"})
        assert response.status_code == 200
        assert response.json()["ok"] is True

        found = client.get("/users", params={"q": "bo"}, headers=ALICE).json()
        assert found == [{"name": "Bob Smith", "email": "b-example-com"}]
        assert client.get("/users", params={"q": "bo"}, headers=BOB).json() == []
        assert len(client.get("/users").json()) == 1


class TestConversations:
    """Test the conversation endpoints."""

    def test_requires_identity(self, client):
        """Test that calls without identity headers are rejected."""
        assert client.get("/conversations").status_code == 401

        response = client.post(
            "/conversations",
            json={"recipient_email": "b@example.com", "recipient_name": "Bob", "kind": {"kind": "text", "text": "x"}},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "missing_identity"

    def test_start_and_list(self, client):
        """Test both participants see the new conversation."""
        conversation_id = _start(client)

        for headers in (ALICE, BOB):
            body = client.get("/conversations", headers=headers).json()
            assert body["total"] == 1
            assert body["conversations"][0]["id"] == conversation_id
            assert body["conversations"][0]["latest_message"]["message"] == "hello"

        feed = client.get(f"/conversations/{conversation_id}/messages").json()
        assert feed["conversation_id"] == conversation_id
        assert feed["messages"][0]["kind"] == {"kind": "text", "text": "hello"}

    def test_send_message(self, client):
        """Test a reply updates the log and summaries."""
        conversation_id = _start(client)

        response = client.post(
            f"/conversations/{conversation_id}/messages",
            headers=BOB,
            json={
                "recipient_email": "a@example.com",
                "recipient_name": "Alice",
                "kind": {"kind": "location", "longitude": 2.35, "latitude": 48.85},
            },
        )

        assert response.status_code == 200
        messages = client.get(f"/conversations/{conversation_id}/messages").json()["messages"]
        assert messages[-1]["kind"] == {"kind": "location", "longitude": 2.35, "latitude": 48.85}
        summary = client.get("/conversations", headers=ALICE).json()["conversations"][0]
        assert summary["latest_message"]["message"] == "2.35,48.85"

    def test_send_to_unknown_conversation(self, client):
        """Test NOT_FOUND maps to 404."""
        response = client.post(
            "/conversations/conversation_missing/messages",
            headers=ALICE,
            json={"recipient_email": "b@example.com", "recipient_name": "Bob", "kind": {"kind": "text", "text": "x"}},
        )
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_mark_read(self, client):
        """Test marking a conversation read for the caller."""
        conversation_id = _start(client)
        assert client.post(f"/conversations/{conversation_id}/read", headers=BOB).status_code == 200
        summary = client.get("/conversations", headers=BOB).json()["conversations"][0]
        assert summary["latest_message"]["is_read"] is True

    def test_delete_is_per_user(self, client):
        """Test deleting hides the conversation for the caller only."""
        conversation_id = _start(client)

        assert client.delete(f"/conversations/{conversation_id}", headers=ALICE).status_code == 200
        assert client.get("/conversations", headers=ALICE).json()["total"] == 0
        assert client.get("/conversations", headers=BOB).json()["total"] == 1
        assert client.delete(f"/conversations/{conversation_id}", headers=ALICE).status_code == 404
