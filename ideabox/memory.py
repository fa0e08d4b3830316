"""Simple in-memory stores for committed boxes, ideas and live sessions."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .errors import PersistenceError, SessionStateError
from .fields import ContextSnapshot, field_names
from .schemas import SessionStatus, UseCase
from .session import GenerationSession

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class BoxRecord(BaseModel):
    """A committed business model (the container ideas are filed into)."""

    id: str = Field(default_factory=_new_id)
    name: str
    fields: Dict[str, str]
    created_at: datetime = Field(default_factory=_now)
    modified_at: datetime = Field(default_factory=_now)

    def context_snapshot(self) -> ContextSnapshot:
        return ContextSnapshot.from_fields(self.name, self.fields)


class IdeaRecord(BaseModel):
    """A committed dump analysis filed into a box."""

    id: str = Field(default_factory=_new_id)
    box_id: str
    title: str = ""
    summary: str = ""
    pros: str = ""
    cons: str = ""
    classification: str = ""
    created_at: datetime = Field(default_factory=_now)


class InMemoryStore:
    """Persist boxes and their ideas for the lifetime of the process."""

    def __init__(self) -> None:
        self._boxes: Dict[str, BoxRecord] = {}
        self._ideas: Dict[str, List[IdeaRecord]] = {}

    def create_box(self, name: str, fields: Mapping[str, str]) -> BoxRecord:
        box = BoxRecord(name=name, fields=dict(fields))
        self._boxes[box.id] = box
        self._ideas[box.id] = []
        return box

    def get_box(self, box_id: str) -> Optional[BoxRecord]:
        return self._boxes.get(box_id)

    def require_box(self, box_id: str) -> BoxRecord:
        box = self._boxes.get(box_id)
        if box is None:
            raise PersistenceError(f"Box '{box_id}' does not exist.")
        return box

    def list_boxes(self) -> List[BoxRecord]:
        """Return boxes, most recently modified first."""

        return sorted(self._boxes.values(), key=lambda box: box.modified_at, reverse=True)

    def add_idea(self, box_id: str, fields: Mapping[str, str]) -> IdeaRecord:
        box = self.require_box(box_id)
        idea = IdeaRecord(box_id=box_id, **{name: fields.get(name, "") for name in field_names(UseCase.DUMP_ANALYSIS)})
        self._ideas[box_id].append(idea)
        box.modified_at = idea.created_at
        return idea

    def ideas_for_box(self, box_id: str) -> List[IdeaRecord]:
        return list(self._ideas.get(box_id, []))


class CommitService:
    """Hand a session's field values to the domain store.

    Every call creates a new entity; there is no deduplication. Store failures
    are raised as :class:`PersistenceError` unchanged, without retry.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def commit(
        self,
        use_case: UseCase,
        field_values: Mapping[str, str],
        target_box_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> str:
        if use_case is UseCase.BUSINESS_MODEL:
            name = (title or "").strip() or field_values.get("highLevelConcept", "").strip()[:60] or "Untitled box"
            box = self.store.create_box(name, field_values)
            logger.info("Committed box %s", box.id)
            return box.id

        if not target_box_id:
            raise PersistenceError("A target box is required to save a dump analysis.")
        idea = self.store.add_idea(target_box_id, field_values)
        logger.info("Committed idea %s into box %s", idea.id, target_box_id)
        return idea.id

    def commit_session(self, session: GenerationSession) -> str:
        """Commit the session's current, possibly edited, field values."""

        if session.status is SessionStatus.PROCESSING:
            raise SessionStateError("Cannot commit while generation is still running.")
        if session.status is not SessionStatus.COMPLETE:
            raise SessionStateError(f"Only complete sessions can be committed (status: {session.status.value}).")
        return self.commit(
            session.use_case,
            dict(session.field_values),
            target_box_id=session.target_box_id,
            title=session.title,
        )


class SessionRegistry:
    """Live sessions by id; sessions are never persisted."""

    def __init__(self) -> None:
        self._sessions: Dict[str, GenerationSession] = {}

    def add(self, session: GenerationSession) -> GenerationSession:
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Optional[GenerationSession]:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> Optional[GenerationSession]:
        return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
