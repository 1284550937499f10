import json

import httpx
import pytest

from src.chat.client import SessionApiClient
from src.chat.errors import PersistenceFailure, SessionNotFound
from src.chat.models import Message, Role, ToolInvocation, ToolState


def _client(handler) -> SessionApiClient:
    transport = httpx.MockTransport(handler)
    return SessionApiClient(client=httpx.AsyncClient(transport=transport, base_url="http://test"))


@pytest.mark.asyncio
async def test_list_sessions_maps_entries():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/sessions"
        assert request.url.params["user_key"] == "alice"
        return httpx.Response(
            200,
            json={
                "sessions": [
                    {"id": "s2", "preview": "Flights", "created_at": "2025-01-02T00:00:00", "updated_at": "2025-01-02T00:00:00"},
                    {"id": "s1", "preview": None, "created_at": "2025-01-01T00:00:00", "updated_at": "2025-01-01T00:00:00"},
                ]
            },
        )

    client = _client(handler)
    entries = await client.list_sessions("alice")
    await client.aclose()

    assert [entry.id for entry in entries] == ["s2", "s1"]
    assert entries[1].preview == "New Chat"


@pytest.mark.asyncio
async def test_get_session_builds_frozen_messages():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "s1",
                "preview": "hi",
                "created_at": "2025-01-01T00:00:00",
                "updated_at": "2025-01-01T00:00:00",
                "messages": [
                    {"id": "m1", "role": "user", "content": "hi", "attachments": [], "toolInvocations": [], "seq": 1,
                     "created_at": "2025-01-01T00:00:00"},
                    {"id": "m2", "role": "assistant", "content": "", "attachments": [], "seq": 2,
                     "created_at": "2025-01-01T00:00:00",
                     "toolInvocations": [{"toolCallId": "t1", "toolName": "getWeather", "state": "result", "result": {"temp": 18}}]},
                ],
            },
        )

    session = await _client(handler).get_session("s1")

    assert [message.role for message in session.messages] == [Role.USER, Role.ASSISTANT]
    assert session.messages[1].tool_invocations[0].state is ToolState.RESULT
    assert all(message.frozen for message in session.messages)


@pytest.mark.asyncio
async def test_get_missing_session():
    client = _client(lambda request: httpx.Response(404, json={"detail": "Session not found"}))
    with pytest.raises(SessionNotFound):
        await client.get_session("nope")


@pytest.mark.asyncio
async def test_delete_of_already_deleted_session_succeeds():
    client = _client(lambda request: httpx.Response(404, json={"detail": "Session not found"}))
    await client.delete_session("gone")


@pytest.mark.asyncio
async def test_server_error_is_persistence_failure():
    client = _client(lambda request: httpx.Response(500, json={"detail": "Internal Server Error"}))
    with pytest.raises(PersistenceFailure) as excinfo:
        await client.delete_session("s1")
    assert excinfo.value.session_id == "s1"


@pytest.mark.asyncio
async def test_transport_error_is_persistence_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PersistenceFailure):
        await _client(handler).list_sessions("alice")


@pytest.mark.asyncio
async def test_append_message_posts_wire_form():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={})

    message = Message(
        id="m2",
        role=Role.ASSISTANT,
        session_id="s1",
        tool_invocations=[ToolInvocation("t1", "getWeather", ToolState.RESULT, {"temp": 18})],
    )
    await _client(handler).append_message(message)

    assert captured["path"] == "/api/sessions/s1/messages"
    assert captured["body"]["toolInvocations"][0] == {
        "toolCallId": "t1",
        "toolName": "getWeather",
        "state": "result",
        "result": {"temp": 18},
    }
