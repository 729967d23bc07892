from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str
    description: str = ""
    target_audience: Optional[str] = Field(default=None, description="Who the concept is aimed at")
    research_goals: List[str] = Field(default_factory=list)


class ProjectContext(BaseModel):
    project_id: str
    user_id: str
    name: str
    description: str = ""
    target_audience: Optional[str] = None
    research_goals: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
