from __future__ import annotations

from fastapi import APIRouter, Depends

from ...domain.artifact_models import ArtifactSaveRequest, ArtifactSaveResponse, ArtifactView
from ...security.auth import User, get_current_user
from ...services.chat_service import ChatService
from ..deps import get_chat_service


router = APIRouter(prefix="/artifacts", tags=["artifacts"])


@router.get("/{group_id}", response_model=ArtifactView)
def get_artifact(
    group_id: str,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ArtifactView:
    return service.get_artifact(user.id, group_id)


@router.put("/{group_id}", response_model=ArtifactSaveResponse)
def autosave_artifact(
    group_id: str,
    req: ArtifactSaveRequest,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
) -> ArtifactSaveResponse:
    info = service.autosave_artifact(user.id, group_id, req.template_data)
    return ArtifactSaveResponse(artifact_info=info)
