from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class QuestionRewordRequest(BaseModel):
    session_id: str = Field(min_length=1)
    artifact_id: str = Field(min_length=1)
    question_text: str = Field(min_length=1)
    question_id: Optional[str] = None


class QuestionSuggestion(BaseModel):
    reworded: str
    reasoning: str
    improvement_type: str
    confidence: float = 0.8


class QuestionRewordResponse(BaseModel):
    original_question: str
    suggestions: List[QuestionSuggestion]
