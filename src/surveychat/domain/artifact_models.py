from __future__ import annotations

"""Artifact (survey template) models.

The document payload is kept as an opaque dict. Only the two fields the
pipeline depends on are checked at the boundary: the ``group_id``
discriminator and the human-readable ``title``.
"""

from typing import Any, Dict, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict


NEW_GROUP_SENTINEL = "new"
DISCRIMINATOR_FIELD = "group_id"


class ArtifactEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    group_id: Optional[Union[str, int]] = None
    title: Optional[str] = None

    @property
    def is_new(self) -> bool:
        ref = self.group_reference
        return ref is None or ref.lower() == NEW_GROUP_SENTINEL

    @property
    def group_reference(self) -> Optional[str]:
        if self.group_id is None:
            return None
        ref = str(self.group_id).strip()
        return ref or None

    @property
    def clean_title(self) -> Optional[str]:
        if isinstance(self.title, str) and self.title.strip():
            return self.title.strip()
        return None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ArtifactEnvelope":
        title = document.get("title")
        group_id = document.get(DISCRIMINATOR_FIELD)
        if group_id is not None and (isinstance(group_id, bool) or not isinstance(group_id, (str, int))):
            group_id = str(group_id)
        return cls(
            group_id=group_id,
            title=title if isinstance(title, str) else None,
        )


class Artifact(BaseModel):
    """One stored version of a logical artifact."""

    artifact_id: str
    group_id: str
    session_id: str
    title: str
    version: int
    document: Dict[str, Any]
    created_at: str


class ArtifactInfo(BaseModel):
    id: str
    artifact_id: str
    action: Literal["created", "updated"]
    version: int
    title: str


class ArtifactSaveRequest(BaseModel):
    template_data: Dict[str, Any]


class ArtifactView(BaseModel):
    id: str
    artifact_id: str
    title: str
    version: int
    template_data: Dict[str, Any]
    created_at: str


class ArtifactSaveResponse(BaseModel):
    success: bool = True
    message: str = "Artifact auto-saved successfully"
    artifact_info: ArtifactInfo
