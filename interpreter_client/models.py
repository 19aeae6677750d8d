"""
Data models for the interpreter client.

The service layer converts vendor SDK objects into these models so the rest
of the client never touches SDK types directly.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_RUN_STATUSES


ACTIVE_RUN_STATUSES = frozenset({RunStatus.QUEUED, RunStatus.IN_PROGRESS})


class MessageRole(str, Enum):
    USER = "user"
    AGENT = "assistant"


class AgentRecord(BaseModel):
    id: str
    name: Optional[str] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    tools: List[str] = Field(default_factory=list)


class ThreadRecord(BaseModel):
    id: str
    file_ids: List[str] = Field(default_factory=list)


class RunRecord(BaseModel):
    id: str
    thread_id: str
    status: RunStatus
    last_error: Optional[str] = None


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageFileContent(BaseModel):
    type: Literal["image_file"] = "image_file"
    file_id: str


class UnsupportedContent(BaseModel):
    """A content kind this client does not render (e.g. file citations)."""

    type: Literal["unsupported"] = "unsupported"
    kind: str


ContentItem = Annotated[
    Union[TextContent, ImageFileContent, UnsupportedContent],
    Field(discriminator="type"),
]


class MessageRecord(BaseModel):
    id: str
    role: MessageRole
    run_id: Optional[str] = None
    content: List[ContentItem] = Field(default_factory=list)


class TextDelta(BaseModel):
    """Incremental text fragment received while streaming a run."""

    type: Literal["text_delta"] = "text_delta"
    text: str


class RunUpdate(BaseModel):
    """Run lifecycle event received while streaming a run."""

    type: Literal["run_update"] = "run_update"
    run: RunRecord


StreamEvent = Union[TextDelta, RunUpdate]


class UploadedFile(BaseModel):
    path: Path
    file_id: str
    size_bytes: int


class DownloadedArtifact(BaseModel):
    file_id: str
    path: Optional[Path] = None
    ok: bool
    error: Optional[str] = None


class TurnResult(BaseModel):
    """Everything one request produced: the run, its text and its images."""

    run: RunRecord
    texts: List[str] = Field(default_factory=list)
    image_file_ids: List[str] = Field(default_factory=list)
    downloads: List[DownloadedArtifact] = Field(default_factory=list)
