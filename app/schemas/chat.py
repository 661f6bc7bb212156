"""Request and response schemas for assistant chat endpoints."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


class ChatRequest(BaseModel):
    """Request schema for the chat endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=2000, description="User message")
    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        max_length=128,
        description="Session to continue; omitted generates an id, unknown starts a session under that id",
    )


class ChatResponse(BaseModel):
    """Response schema for the chat endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    response: str = Field(..., description="Assistant reply (fallback text when the model is unavailable)")
    session_id: str = Field(..., alias="sessionId", description="Session ID to send with the next message")


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


class ChatHistoryResponse(BaseModel):
    """Current live window of a session."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    messages: List[ChatTurn]
