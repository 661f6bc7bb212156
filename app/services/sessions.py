"""In-memory assistant chat sessions.

A session is a short window of turns under an opaque id. The store owns all
sessions for the serving process; request handlers receive it by reference
(see `app.api.chat.get_session_store`). Turns within one session are
serialized by a per-session asyncio lock, so a slow model reply for one user
never blocks another user's conversation.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Literal, Optional
from app.core.errors import UpstreamReplyFailure, ValidationError

logger = logging.getLogger(__name__)

SESSION_ID_MAX_CHARS = 128

DEFAULT_FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble connecting right now. Please try again in a moment "
    "or contact our support team at support@myparkplus.com."
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Turn:
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


@dataclass
class ChatSession:
    session_id: str
    created_at: datetime
    turns: List[Turn] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    # Set once the session has been cleared or evicted; callers queued on the
    # lock re-open the id instead of writing here.
    closed: bool = False

    @property
    def last_activity(self) -> datetime:
        return self.turns[-1].timestamp if self.turns else self.created_at


@dataclass(frozen=True)
class ChatResult:
    reply: str
    session_id: str
    fallback: bool = False


# reply_fn(context, user_message) -> assistant text
ReplyFn = Callable[[List[Turn], str], Awaitable[str]]


class SessionStore:
    """Bounded, TTL-evicted conversation sessions held in process memory."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta = timedelta(hours=24),
        max_turns: int = 20,
        context_turns: int = 6,
        reply_timeout: float = 20.0,
        sweep_interval: float = 3600.0,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
    ):
        """
        Args:
            clock: Returns the current (timezone-aware) time.
            ttl: Idle time after which a session is evicted by a sweep.
            max_turns: Turns kept per session after every exchange.
            context_turns: Most recent turns handed to the reply function.
            reply_timeout: Seconds to wait for the reply function before falling back.
            sweep_interval: Seconds between sweeps in `run_sweeper`.
            fallback_reply: Text used when the reply function fails or times out.
        """
        if max_turns < 2:
            raise ValueError("max_turns must allow at least one exchange")
        if not 1 <= context_turns <= max_turns:
            raise ValueError("context_turns must be between 1 and max_turns")
        if not fallback_reply.strip():
            raise ValueError("fallback_reply must not be empty")
        self._clock = clock
        self.ttl = ttl
        self.max_turns = max_turns
        self.context_turns = context_turns
        self.reply_timeout = reply_timeout
        self.sweep_interval = sweep_interval
        self.fallback_reply = fallback_reply
        self._sessions: Dict[str, ChatSession] = {}
        self._sweeper_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings) -> "SessionStore":
        return cls(
            ttl=timedelta(seconds=settings.chat_session_ttl_seconds),
            max_turns=settings.chat_max_turns,
            context_turns=settings.chat_context_turns,
            reply_timeout=float(settings.llm_timeout_seconds),
            sweep_interval=float(settings.chat_sweep_interval_seconds),
            fallback_reply=settings.chat_fallback_reply,
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _checkout(self, session_id: Optional[str]) -> ChatSession:
        """Return the live session for `session_id`, creating it under that id if needed."""
        session = self._sessions.get(session_id) if session_id else None
        if session is not None:
            return session
        if session_id:
            logger.info(f"Session {session_id} not found, starting it")
        new_id = session_id or str(uuid.uuid4())
        session = ChatSession(session_id=new_id, created_at=self._clock())
        self._sessions[new_id] = session
        return session

    async def send(self, session_id: Optional[str], user_text: str, reply_fn: ReplyFn) -> ChatResult:
        """
        Record one user message and one assistant reply.

        The reply function sees at most `context_turns` turns, ending with the
        new user message. A missing `session_id` gets a generated one; an
        unknown id starts a new session under that same id, so clients that
        pick their own ids keep continuity after a restart or eviction.

        Any failure or timeout of the reply function is logged and replaced by
        the fallback reply; the exchange is recorded either way and the
        returned session id is always usable.
        """
        if not isinstance(user_text, str) or not user_text.strip():
            raise ValidationError("Message is required")
        if session_id is not None and (not isinstance(session_id, str) or len(session_id) > SESSION_ID_MAX_CHARS):
            raise ValidationError(f"Session ID must be a string of at most {SESSION_ID_MAX_CHARS} characters")

        while True:
            session = self._checkout(session_id)
            async with session.lock:
                if session.closed:
                    # Cleared or evicted while we waited; reopen under the same id
                    session_id = session.session_id
                    continue
                return await self._exchange(session, user_text, reply_fn)

    async def _exchange(self, session: ChatSession, user_text: str, reply_fn: ReplyFn) -> ChatResult:
        session.turns.append(Turn("user", user_text, self._clock()))
        context = session.turns[-self.context_turns:]

        fallback = False
        try:
            reply = await asyncio.wait_for(reply_fn(context, user_text), timeout=self.reply_timeout)
            if not isinstance(reply, str) or not reply.strip():
                raise UpstreamReplyFailure("Reply function returned no text")
        except asyncio.TimeoutError:
            logger.warning(f"Assistant reply timed out after {self.reply_timeout}s (session {session.session_id})")
            reply, fallback = self.fallback_reply, True
        except Exception as e:
            logger.error(f"Assistant reply failed (session {session.session_id}): {e}", exc_info=True)
            reply, fallback = self.fallback_reply, True

        session.turns.append(Turn("assistant", reply, self._clock()))
        if len(session.turns) > self.max_turns:
            del session.turns[:-self.max_turns]
        return ChatResult(reply=reply, session_id=session.session_id, fallback=fallback)

    def get(self, session_id: str) -> Optional[List[Turn]]:
        """Snapshot of a session's current turns, or None if it does not exist."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return list(session.turns)

    def clear(self, session_id: str) -> bool:
        """Drop a session now. Returns False if it was already gone."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.closed = True
        logger.info(f"Cleared session {session_id}")
        return True

    async def sweep_expired(self, now: Optional[datetime] = None, ttl: Optional[timedelta] = None) -> int:
        """
        Evict every session idle for longer than `ttl`. Returns the number evicted.

        Walks a snapshot of the sessions and locks each expired one only while
        removing it; sessions that became active in the meantime are kept.
        """
        now = now or self._clock()
        cutoff = now - (ttl if ttl is not None else self.ttl)
        evicted = 0
        for session_id, session in list(self._sessions.items()):
            if session.last_activity >= cutoff:
                continue
            async with session.lock:
                if session.closed or session.last_activity >= cutoff:
                    continue
                session.closed = True
                if self._sessions.get(session_id) is session:
                    del self._sessions[session_id]
                evicted += 1
        if evicted:
            logger.info(f"Evicted {evicted} idle chat session(s); {len(self._sessions)} active")
        return evicted

    async def run_sweeper(self, interval: Optional[float] = None) -> None:
        """Sweep forever on a fixed interval. Cancel the task to stop."""
        interval = interval or self.sweep_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_expired()
            except Exception:
                logger.exception("Chat session sweep failed")

    def start_sweeper(self) -> asyncio.Task:
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.create_task(self.run_sweeper())
            logger.info(f"Chat session sweeper started (every {self.sweep_interval:.0f}s)")
        return self._sweeper_task

    async def stop_sweeper(self) -> None:
        task, self._sweeper_task = self._sweeper_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
