"""Tests for the in-memory chat session store."""
import asyncio
from datetime import timedelta

import pytest

from app.core.errors import UpstreamReplyFailure, ValidationError
from app.services.sessions import DEFAULT_FALLBACK_REPLY, SessionStore


def echo_reply(calls=None):
    async def reply(context, user_message):
        if calls is not None:
            calls.append([(t.role, t.content) for t in context])
        return f"echo: {user_message}"
    return reply


async def failing_reply(context, user_message):
    raise UpstreamReplyFailure("Gemini request failed: 503")


@pytest.mark.asyncio
async def test_send_without_session_creates_one(store):
    result = await store.send(None, "Where can I park near C21 Mall?", echo_reply())

    assert result.reply == "echo: Where can I park near C21 Mall?"
    assert result.session_id
    assert not result.fallback
    turns = store.get(result.session_id)
    assert [(t.role, t.content) for t in turns] == [
        ("user", "Where can I park near C21 Mall?"),
        ("assistant", "echo: Where can I park near C21 Mall?"),
    ]


@pytest.mark.asyncio
async def test_send_continues_existing_session(store):
    first = await store.send(None, "hi", echo_reply())
    second = await store.send(first.session_id, "book a slot", echo_reply())

    assert second.session_id == first.session_id
    assert len(store.get(first.session_id)) == 4
    assert len(store) == 1


@pytest.mark.asyncio
async def test_unknown_session_id_is_kept(store):
    result = await store.send("client-chosen-id", "hello", echo_reply())

    assert result.session_id == "client-chosen-id"
    assert len(store.get("client-chosen-id")) == 2

    again = await store.send("client-chosen-id", "more", echo_reply())
    assert again.session_id == "client-chosen-id"
    assert len(store.get("client-chosen-id")) == 4


@pytest.mark.asyncio
async def test_cleared_session_id_continues_under_same_id(store):
    first = await store.send(None, "hello", echo_reply())
    store.clear(first.session_id)

    result = await store.send(first.session_id, "back again", echo_reply())

    assert result.session_id == first.session_id
    assert [t.content for t in store.get(first.session_id)] == ["back again", "echo: back again"]


@pytest.mark.asyncio
async def test_oversized_session_id_rejected(store):
    with pytest.raises(ValidationError):
        await store.send("x" * 129, "hello", echo_reply())
    assert len(store) == 0


@pytest.mark.asyncio
async def test_context_is_bounded_and_ends_with_user_message(store):
    calls = []
    reply = echo_reply(calls)
    result = await store.send(None, "m0", reply)
    for i in range(1, 6):
        await store.send(result.session_id, f"m{i}", reply)

    last_context = calls[-1]
    assert len(last_context) == store.context_turns
    assert last_context[-1] == ("user", "m5")
    assert calls[0] == [("user", "m0")]


@pytest.mark.asyncio
async def test_session_never_exceeds_max_turns(store):
    result = await store.send(None, "m0", echo_reply())
    for i in range(1, 15):
        await store.send(result.session_id, f"m{i}", echo_reply())
        assert len(store.get(result.session_id)) <= store.max_turns

    turns = store.get(result.session_id)
    assert len(turns) == 20
    # Oldest dropped first: 15 exchanges, first 5 gone
    assert turns[0].content == "m5"
    assert turns[-1].content == "echo: m14"


@pytest.mark.asyncio
async def test_failing_reply_uses_fallback(store):
    result = await store.send(None, "check my challan", failing_reply)

    assert result.fallback
    assert result.reply == DEFAULT_FALLBACK_REPLY
    assert result.session_id in store
    turns = store.get(result.session_id)
    assert turns[0].content == "check my challan"
    assert turns[1].content == DEFAULT_FALLBACK_REPLY

    # Conversation continues normally afterwards
    follow_up = await store.send(result.session_id, "again", echo_reply())
    assert follow_up.session_id == result.session_id
    assert not follow_up.fallback


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback(store):
    async def blank(context, user_message):
        return "   "

    result = await store.send(None, "hello", blank)
    assert result.fallback
    assert result.reply == store.fallback_reply


@pytest.mark.asyncio
async def test_slow_reply_times_out_to_fallback(clock):
    store = SessionStore(clock=clock, reply_timeout=0.05)

    async def slow(context, user_message):
        await asyncio.sleep(5)
        return "too late"

    result = await store.send(None, "hello", slow)
    assert result.fallback
    assert store.get(result.session_id)[-1].content == store.fallback_reply


@pytest.mark.asyncio
async def test_blank_message_rejected(store):
    with pytest.raises(ValidationError):
        await store.send(None, "   ", echo_reply())
    assert len(store) == 0


@pytest.mark.asyncio
async def test_turns_in_one_session_do_not_interleave(store):
    gate = asyncio.Event()

    async def gated(context, user_message):
        if user_message == "first":
            await gate.wait()
        return f"re: {user_message}"

    start = await store.send(None, "hello", echo_reply())
    sid = start.session_id

    first = asyncio.create_task(store.send(sid, "first", gated))
    await asyncio.sleep(0)
    second = asyncio.create_task(store.send(sid, "second", gated))
    await asyncio.sleep(0.01)
    gate.set()
    await asyncio.gather(first, second)

    contents = [t.content for t in store.get(sid)][2:]
    assert contents == ["first", "re: first", "second", "re: second"]


@pytest.mark.asyncio
async def test_other_sessions_not_blocked_by_slow_reply(store):
    gate = asyncio.Event()

    async def blocked(context, user_message):
        await gate.wait()
        return "finally"

    slow_session = await store.send(None, "hello", echo_reply())
    pending = asyncio.create_task(store.send(slow_session.session_id, "wait", blocked))
    await asyncio.sleep(0)

    other = await asyncio.wait_for(store.send(None, "quick", echo_reply()), timeout=0.5)
    assert other.reply == "echo: quick"

    gate.set()
    await pending


@pytest.mark.asyncio
async def test_clear_is_idempotent(store):
    result = await store.send(None, "hi", echo_reply())

    assert store.clear(result.session_id) is True
    assert store.get(result.session_id) is None
    assert store.clear(result.session_id) is False


@pytest.mark.asyncio
async def test_sweep_evicts_only_idle_sessions(store, clock):
    old = await store.send(None, "old", echo_reply())
    clock.advance(hours=23)
    fresh = await store.send(None, "fresh", echo_reply())

    # Exactly at the TTL the old session is still kept
    clock.advance(hours=1)
    assert await store.sweep_expired() == 0

    clock.advance(seconds=1)
    evicted = await store.sweep_expired()

    assert evicted == 1
    assert old.session_id not in store
    assert fresh.session_id in store


@pytest.mark.asyncio
async def test_sweep_with_explicit_now_and_ttl(store, clock):
    result = await store.send(None, "hi", echo_reply())
    later = clock.now + timedelta(minutes=31)

    assert await store.sweep_expired(now=later, ttl=timedelta(minutes=30)) == 1
    assert result.session_id not in store


@pytest.mark.asyncio
async def test_activity_resets_idle_timer(store, clock):
    result = await store.send(None, "hi", echo_reply())
    clock.advance(hours=20)
    await store.send(result.session_id, "still here", echo_reply())
    clock.advance(hours=20)

    assert await store.sweep_expired() == 0
    assert result.session_id in store


@pytest.mark.asyncio
async def test_session_cleared_while_waiting_keeps_its_id(store):
    gate = asyncio.Event()

    async def gated(context, user_message):
        await gate.wait()
        return "done"

    start = await store.send(None, "hello", echo_reply())
    sid = start.session_id
    busy = asyncio.create_task(store.send(sid, "busy", gated))
    await asyncio.sleep(0)
    queued = asyncio.create_task(store.send(sid, "queued", echo_reply()))
    await asyncio.sleep(0)

    store.clear(sid)
    gate.set()
    await busy
    result = await queued

    assert result.session_id == sid
    assert [t.content for t in store.get(sid)] == ["queued", "echo: queued"]


@pytest.mark.asyncio
async def test_sweeper_task_runs_and_stops(clock):
    store = SessionStore(clock=clock, sweep_interval=0.01)
    result = await store.send(None, "hi", echo_reply())
    clock.advance(days=2)

    store.start_sweeper()
    for _ in range(50):
        if result.session_id not in store:
            break
        await asyncio.sleep(0.01)
    await store.stop_sweeper()

    assert result.session_id not in store


def test_invalid_window_configuration():
    with pytest.raises(ValueError):
        SessionStore(max_turns=20, context_turns=21)
    with pytest.raises(ValueError):
        SessionStore(fallback_reply=" ")
