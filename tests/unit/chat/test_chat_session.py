import asyncio

import httpx
import pytest
import pytest_asyncio

from src.chat.attachments import AttachmentCandidate
from src.chat.client import SessionApiClient
from src.chat.events import ContentDelta, ToolCallRegistered, ToolCallResolved, TurnFinished
from src.chat.history import HistoryStore
from src.chat.models import Role, ToolState
from src.chat.reducer import TurnState
from src.chat.session import ChatSession
from src.server.session.dependencies import set_session_store
from src.server.session.store import SQLiteSessionStore


@pytest_asyncio.fixture
async def api(tmp_path):
    store = SQLiteSessionStore(str(tmp_path / "chat_session.db"))
    await store.init()
    set_session_store(store)

    from src.server.app import app

    transport = httpx.ASGITransport(app=app)
    client = SessionApiClient(client=httpx.AsyncClient(transport=transport, base_url="http://test"))
    yield client
    await client.aclose()
    set_session_store(None)


async def _turn(*events):
    for event in events:
        await asyncio.sleep(0)
        yield event


@pytest.mark.asyncio
async def test_first_turn_persists_session_and_updates_history(api):
    history = HistoryStore(api, "alice")
    await history.refresh()
    navigated = []
    session = ChatSession(api, history, "alice", on_navigate=navigated.append)

    session.attachments.add(
        AttachmentCandidate(url="https://files/map.png", name="map.png", content_type="image/png", size=1024)
    )
    session.submit("What's the weather in Paris?")
    assert not session.durable
    assert history.ids() == []

    await session.run_turn(
        _turn(
            ToolCallRegistered(tool_call_id="t1", tool_name="getWeather"),
            ToolCallResolved(tool_call_id="t1", result={"temp": 18}),
            ContentDelta(text="It is 18 degrees in Paris."),
            TurnFinished(),
        )
    )

    assert session.durable
    assert navigated == [f"/chat/{session.session_id}"]
    assert history.ids() == [session.session_id]
    assert history.list()[0].preview == "What's the weather in Paris?"

    stored = await api.get_session(session.session_id)
    assert [message.role for message in stored.messages] == [Role.USER, Role.ASSISTANT]
    assert stored.messages[0].attachments[0].content_type == "image/png"
    assert stored.messages[1].tool_invocations[0].result == {"temp": 18}

    session.submit("And tomorrow?")
    await session.run_turn(_turn(ContentDelta(text="Sunny."), TurnFinished()))
    assert navigated == [f"/chat/{session.session_id}"]
    assert len((await api.get_session(session.session_id)).messages) == 4


@pytest.mark.asyncio
async def test_loaded_session_continues_where_it_left_off(api):
    history = HistoryStore(api, "alice")
    first = ChatSession(api, history, "alice")
    first.submit("hello")
    await first.run_turn(_turn(ContentDelta(text="hi"), TurnFinished()))

    navigated = []
    loaded = await ChatSession.load(api, history, "alice", first.session_id, on_navigate=navigated.append)
    assert loaded.durable
    assert [message.text for message in loaded.reducer.messages] == ["hello", "hi"]

    loaded.submit("book a seat")
    await loaded.run_turn(
        _turn(
            ToolCallRegistered(tool_call_id="t1", tool_name="selectSeats"),
            ToolCallResolved(tool_call_id="t1", result={"seats": ["12A"]}),
            TurnFinished(),
        )
    )
    assert navigated == []
    assert len((await api.get_session(first.session_id)).messages) == 4


@pytest.mark.asyncio
async def test_stopped_turn_is_saved_with_cancelled_calls(api):
    history = HistoryStore(api, "alice")
    session = ChatSession(api, history, "alice")
    session.submit("find flights")
    hold = asyncio.Event()

    async def stream():
        yield ToolCallRegistered(tool_call_id="t1", tool_name="searchFlights")
        await hold.wait()

    task = asyncio.create_task(session.run_turn(stream()))
    while session.reducer.tracker.get("t1") is None:
        await asyncio.sleep(0)
    session.stop()
    await task

    stored = await api.get_session(session.session_id)
    assert stored.messages[1].tool_invocations[0].state is ToolState.CANCELLED
    assert history.ids() == [session.session_id]


@pytest.mark.asyncio
async def test_turn_in_a_chat_deleted_from_history_reports_save_failure(api):
    history = HistoryStore(api, "alice")
    notices = []
    session = ChatSession(api, history, "alice", notify=notices.append)
    session.submit("hello")
    await session.run_turn(_turn(ContentDelta(text="hi"), TurnFinished()))
    await history.request_delete(session.session_id)
    notices.clear()

    session.submit("still there?")
    await session.run_turn(_turn(ContentDelta(text="no"), TurnFinished()))

    assert [notice.message for notice in notices] == ["Failed to save chat"]
    assert session.reducer.state is TurnState.IDLE
    assert history.ids() == []
    assert await api.list_sessions("alice") == []
