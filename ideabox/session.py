"""State of one generation session and fan-out of its events."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from .errors import SessionStateError
from .fields import ContextSnapshot, PromptInput, field_names
from .schemas import (
    BackendKind,
    EventType,
    SessionEvent,
    SessionSnapshot,
    SessionStatus,
    UseCase,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[SessionEvent], None]


class GenerationSession:
    """Unit of work for one user action ("create" or "dump").

    Only the orchestrator that owns the session mutates its generation state.
    ``field_values`` keeps schema order; every field starts empty.
    """

    def __init__(
        self,
        use_case: UseCase,
        input_text: str,
        *,
        backend: Optional[BackendKind] = None,
        title: Optional[str] = None,
        context: Optional[ContextSnapshot] = None,
        target_box_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.use_case = use_case
        self.input_text = input_text
        self.title = title
        self.context = context
        self.target_box_id = target_box_id
        self.backend = backend
        self.created_at = datetime.now(timezone.utc)
        self.field_values: Dict[str, str] = {name: "" for name in field_names(use_case)}
        self.status = SessionStatus.IDLE
        self.progress = 0.0
        self.status_text = ""
        self.error_message: Optional[str] = None
        self.failed_field: Optional[str] = None
        self.cancelled = False
        self._started = False
        self._queues: List[asyncio.Queue] = []
        self._listeners: List[EventListener] = []

    @property
    def prompt_input(self) -> PromptInput:
        return PromptInput(text=self.input_text, title=self.title, context=self.context)

    @property
    def has_generated_content(self) -> bool:
        return any(value for value in self.field_values.values())

    @property
    def is_ready_to_commit(self) -> bool:
        return self.status is SessionStatus.COMPLETE and self.has_generated_content

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        """Return a queue that receives every event emitted from now on."""

        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event_type: EventType, *, field: Optional[str] = None) -> SessionEvent:
        event = SessionEvent(
            type=event_type,
            session_id=self.id,
            status=self.status,
            progress=self.progress,
            status_text=self.status_text,
            field=field,
            value=self.field_values.get(field) if field else None,
            error=self.error_message,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event of session %s", event_type.value, self.id)
        for queue in list(self._queues):
            queue.put_nowait(event)
        return event

    # ------------------------------------------------------------------
    # Mutations used by the orchestrator
    # ------------------------------------------------------------------

    def set_field(self, name: str, value: str) -> bool:
        """Overwrite a field; returns ``False`` when the value did not change."""

        if name not in self.field_values:
            raise KeyError(name)
        if self.field_values[name] == value:
            return False
        self.field_values[name] = value
        return True

    def advance_progress(self, value: float) -> float:
        """Raise progress to ``value``; progress never moves backwards."""

        self.progress = max(self.progress, min(1.0, value))
        return self.progress

    def begin(self, status_text: str) -> None:
        if self._started:
            raise SessionStateError(f"Session {self.id} was already started or cancelled; create a new session instead.")
        self._started = True
        self.status = SessionStatus.PROCESSING
        self.status_text = status_text

    def abandon(self, message: str) -> None:
        """End a session that never started; it can no longer be started."""

        self._started = True
        self.cancelled = True
        self.fail(message)

    def complete(self, status_text: str) -> None:
        self.status = SessionStatus.COMPLETE
        self.progress = 1.0
        self.status_text = status_text

    def fail(self, message: str, field: Optional[str] = None) -> None:
        self.status = SessionStatus.ERROR
        self.error_message = message
        self.failed_field = field
        self.status_text = "Error occurred"

    # ------------------------------------------------------------------
    # User-facing operations
    # ------------------------------------------------------------------

    def edit_fields(self, edits: Mapping[str, str]) -> None:
        """Apply user edits to a finished session ahead of a commit."""

        if self.status is not SessionStatus.COMPLETE:
            raise SessionStateError(f"Fields can only be edited once generation is complete (status: {self.status.value}).")
        unknown = [name for name in edits if name not in self.field_values]
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        for name, value in edits.items():
            self.field_values[name] = value

    def reset(self) -> None:
        """Clear generated content. A reset session cannot be started again."""

        if self.status is SessionStatus.PROCESSING:
            raise SessionStateError("Cannot reset a session while it is processing.")
        self.field_values = {name: "" for name in self.field_values}
        self.status = SessionStatus.IDLE
        self.progress = 0.0
        self.status_text = ""
        self.error_message = None
        self.failed_field = None
        self.cancelled = False

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            use_case=self.use_case,
            backend=self.backend,
            status=self.status,
            progress=self.progress,
            status_text=self.status_text,
            error_message=self.error_message,
            failed_field=self.failed_field,
            cancelled=self.cancelled,
            field_values=dict(self.field_values),
            target_box_id=self.target_box_id,
            title=self.title,
            created_at=self.created_at,
        )
