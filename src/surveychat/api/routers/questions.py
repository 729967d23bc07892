from __future__ import annotations

from fastapi import APIRouter, Depends

from ...domain.question_models import QuestionRewordRequest, QuestionRewordResponse
from ...security.auth import User, get_current_user
from ...services.question_rewriter import QuestionRewriter
from ..deps import get_question_rewriter


router = APIRouter(tags=["questions"])


@router.post("/question-rewriter", response_model=QuestionRewordResponse)
def rewrite_question(
    req: QuestionRewordRequest,
    user: User = Depends(get_current_user),
    rewriter: QuestionRewriter = Depends(get_question_rewriter),
) -> QuestionRewordResponse:
    return rewriter.rewrite_question(user.id, req)
