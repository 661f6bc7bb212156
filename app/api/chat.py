"""Assistant chat endpoints backed by the in-memory session store."""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from app.schemas.chat import ChatHistoryResponse, ChatRequest, ChatResponse, ChatTurn
from app.services.llm import gemini_reply
from app.services.sessions import ReplyFn, SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_store(request: Request) -> SessionStore:
    """The process-wide store created with the app (see app.main)."""
    return request.app.state.session_store


def get_reply_fn() -> ReplyFn:
    return gemini_reply


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    store: SessionStore = Depends(get_session_store),
    reply_fn: ReplyFn = Depends(get_reply_fn),
):
    """
    Send one message to the assistant.

    Omit sessionId (or send an unknown one) to start a new conversation; the
    returned sessionId continues it. Model failures come back as a polite
    fallback reply, never as an error.
    """
    result = await store.send(request.session_id, request.message.strip(), reply_fn)
    if result.fallback:
        logger.info(f"Served fallback reply for session {result.session_id}")
    return ChatResponse(response=result.reply, session_id=result.session_id)


@router.get("/{session_id}", response_model=ChatHistoryResponse)
async def get_conversation(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Current live window of a conversation."""
    turns = store.get(session_id)
    if turns is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ChatHistoryResponse(
        session_id=session_id,
        messages=[ChatTurn(role=t.role, content=t.content, timestamp=t.timestamp) for t in turns],
    )


@router.delete("/{session_id}", status_code=204)
async def clear_conversation(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Forget a conversation. Succeeds whether or not it exists."""
    store.clear(session_id)
    return Response(status_code=204)
