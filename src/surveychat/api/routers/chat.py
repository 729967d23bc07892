from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from ...domain.chat_models import ChatDeleteResponse, ChatHistory, ChatListResponse, ChatRequest, ChatResponse
from ...security.auth import User, get_current_user
from ...services.chat_service import ChatService
from ..deps import get_chat_service


router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.post("", response_model=ChatResponse)
def send_message(
    req: ChatRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    response, is_first_exchange = service.handle_message(user.id, req)
    if is_first_exchange:
        background_tasks.add_task(service.assign_session_title, response.session_id, req.message)
    return response


@router.get("/sessions", response_model=ChatListResponse)
def list_chats(
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ChatListResponse:
    return ChatListResponse(chats=service.list_chats(user.id))


@router.get("/sessions/{session_id}", response_model=ChatHistory)
def get_chat(
    session_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ChatHistory:
    return service.get_history(user.id, session_id)


@router.delete("/sessions/{session_id}", response_model=ChatDeleteResponse)
def delete_chat(
    session_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ChatDeleteResponse:
    service.delete_chat(user.id, session_id)
    return ChatDeleteResponse(session_id=session_id)
