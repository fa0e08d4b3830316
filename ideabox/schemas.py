"""Pydantic models and enums for the IdeaBox generation API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class UseCase(str, Enum):
    """Enumerate the supported generation use cases."""

    BUSINESS_MODEL = "business_model"
    DUMP_ANALYSIS = "dump_analysis"

    @property
    def label(self) -> str:
        labels = {
            UseCase.BUSINESS_MODEL: "Create business model",
            UseCase.DUMP_ANALYSIS: "Analyze idea dump",
        }
        return labels[self]


class SessionStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_finished(self) -> bool:
        return self in (SessionStatus.COMPLETE, SessionStatus.ERROR)


class EventType(str, Enum):
    FIELD_UPDATED = "field_updated"
    STATUS = "status"
    COMPLETED = "completed"
    ERROR = "error"


class BackendKind(str, Enum):
    """Tag of the two interchangeable generation backends."""

    MANAGED = "managed"
    LOCAL = "local"


class BackendPreference(str, Enum):
    """User preference; ``local`` mirrors choosing the alternate on-device model."""

    AUTO = "auto"
    LOCAL = "local"


class ManagedAvailability(str, Enum):
    AVAILABLE = "available"
    NOT_ELIGIBLE = "not_eligible"
    NOT_ENABLED = "not_enabled"
    INITIALIZING = "initializing"
    UNKNOWN = "unknown"


class LocalReadiness(str, Enum):
    NOT_DOWNLOADED = "not_downloaded"
    DOWNLOADING = "downloading"
    READY = "ready"


class ResolutionState(str, Enum):
    READY = "ready"
    WAITING = "waiting"
    UNAVAILABLE = "unavailable"


class FieldDescriptor(BaseModel):
    """Expose a single field of a schema to the UI."""

    name: str
    label: str
    max_tokens: int
    closed_set: Optional[List[str]] = None


class SchemaDefinition(BaseModel):
    use_case: UseCase
    label: str
    fields: List[FieldDescriptor]


class SessionEvent(BaseModel):
    """One observable change of a generation session."""

    type: EventType
    session_id: str
    status: SessionStatus
    progress: float
    status_text: str = ""
    field: Optional[str] = None
    value: Optional[str] = None
    error: Optional[str] = None


class SessionSnapshot(BaseModel):
    """Point-in-time copy of a session's state."""

    id: str
    use_case: UseCase
    backend: Optional[BackendKind]
    status: SessionStatus
    progress: float
    status_text: str
    error_message: Optional[str] = None
    failed_field: Optional[str] = None
    cancelled: bool = False
    field_values: Dict[str, str]
    target_box_id: Optional[str] = None
    title: Optional[str] = None
    created_at: datetime


class SessionRequest(BaseModel):
    """Payload for starting a generation session."""

    use_case: UseCase = UseCase.BUSINESS_MODEL
    input_text: str = Field(
        default="",
        description="Free-text business idea or raw idea dump.",
    )
    title: Optional[str] = Field(
        default=None,
        description="Optional name for the box created from a business model session.",
    )
    target_box_id: Optional[str] = Field(
        default=None,
        description="Box that a dump analysis is written into; required for commits.",
    )
    preference: BackendPreference = BackendPreference.AUTO


class FieldEdits(BaseModel):
    """User edits applied to a finished session before commit."""

    field_values: Dict[str, str]


class CommitResponse(BaseModel):
    entity_id: str
    use_case: UseCase


class LocalModelStatusModel(BaseModel):
    state: LocalReadiness
    progress: float
    detail: str = ""


class ResolutionModel(BaseModel):
    state: ResolutionState
    kind: Optional[BackendKind] = None
    reason: str
    download_required: bool = False


class BackendStatusResponse(BaseModel):
    managed: ManagedAvailability
    local: LocalModelStatusModel
    resolution: ResolutionModel


class DownloadResponse(BaseModel):
    started: bool
    local: LocalModelStatusModel


class IdeaView(BaseModel):
    id: str
    title: str
    summary: str
    pros: str
    cons: str
    classification: str
    created_at: datetime
    created: str


class BoxView(BaseModel):
    id: str
    name: str
    fields: Dict[str, str]
    created_at: datetime
    modified_at: datetime
    updated: str
    ideas: List[IdeaView] = Field(default_factory=list)
