from __future__ import annotations

from typing import Any, Dict, List, Optional, Literal
from pydantic import BaseModel, Field

from .artifact_models import ArtifactInfo


Role = Literal["user", "assistant"]
MessageType = Literal["text", "artifact", "error"]


class ChatSession(BaseModel):
    session_id: str
    user_id: str
    project_id: Optional[str] = None
    title: str
    session_type: str = "general"
    created_at: str
    updated_at: str


class ChatMessage(BaseModel):
    message_id: str
    session_id: str
    role: Role
    content: Optional[str] = None
    message_type: MessageType = "text"
    is_artifact: bool = False
    artifact_id: Optional[str] = None
    created_at: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: Optional[str] = None
    project_id: Optional[str] = None
    type: Optional[Literal["conversation", "template", "analysis", "advice"]] = None


class ResponseMessage(BaseModel):
    message_id: str
    type: Literal["text", "artifact"]
    content: Optional[str] = None
    role: Role = "assistant"
    created_at: str
    session_id: str
    artifact_data: Optional[Dict[str, Any]] = None
    artifact_info: Optional[ArtifactInfo] = None


class ChatResponse(BaseModel):
    messages: List[ResponseMessage]
    session_id: str
    total_messages: int


class ChatSummary(BaseModel):
    id: str
    title: str
    type: str
    project_name: Optional[str] = None
    message_count: int
    created_at: str
    updated_at: str


class ChatListResponse(BaseModel):
    chats: List[ChatSummary]


class ArtifactVersionView(BaseModel):
    id: str
    artifact_id: str
    title: str
    version: int
    template_data: Dict[str, Any]
    is_current: bool


class HistoryMessage(BaseModel):
    id: str
    role: Role
    content: Optional[str] = None
    message_type: MessageType
    is_artifact: bool
    artifact_id: Optional[str] = None
    created_at: str
    artifact: Optional[ArtifactVersionView] = None


class SessionView(BaseModel):
    id: str
    title: str
    type: str
    project_name: Optional[str] = None
    created_at: str


class ChatHistory(BaseModel):
    session: SessionView
    messages: List[HistoryMessage]


class ChatDeleteResponse(BaseModel):
    success: bool = True
    message: str = "Chat deleted successfully"
    session_id: str
