"""Drive a generation session through its field schema."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Dict, Optional

from .backends import GenerationBackend
from .config import DEFAULT_TEMPERATURE
from .errors import BackendError
from .fields import FieldSpec, schema_for
from .normalizer import normalize
from .schemas import EventType, SessionStatus, UseCase
from .session import GenerationSession

logger = logging.getLogger(__name__)

# Rough size of a token in characters, used to estimate streaming progress.
CHARS_PER_TOKEN = 4
# Share of a field's progress slot that streaming may fill before the field ends.
STREAMING_SHARE = 0.8

START_TEXT = {
    UseCase.BUSINESS_MODEL: "Preparing to generate business model...",
    UseCase.DUMP_ANALYSIS: "Preparing to analyze dump content...",
}
COMPLETE_TEXT = {
    UseCase.BUSINESS_MODEL: "Business model generation complete!",
    UseCase.DUMP_ANALYSIS: "Dump analysis complete!",
}


class _FieldRequest:
    """Receives cumulative chunks for one field and applies them on the loop thread.

    Once closed, chunks that still arrive (for example scheduled from another
    thread just before the request finished) are dropped.
    """

    def __init__(
        self,
        session: GenerationSession,
        spec: FieldSpec,
        index: int,
        total: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.session = session
        self.spec = spec
        self.index = index
        self.total = total
        self._loop = loop
        self._loop_thread = threading.get_ident()
        self.active = True

    def on_chunk(self, text: str) -> None:
        if threading.get_ident() == self._loop_thread:
            self._apply(text)
        else:
            self._loop.call_soon_threadsafe(self._apply, text)

    def close(self) -> None:
        self.active = False

    def _apply(self, text: str) -> None:
        if not self.active or self.session.cancelled:
            return
        value = normalize(text, self.spec.closed_set)
        if not self.session.set_field(self.spec.name, value):
            return
        fraction = min(1.0, len(text) / float(self.spec.max_tokens * CHARS_PER_TOKEN))
        ceiling = (self.index + 1) / self.total
        self.session.advance_progress(min(ceiling, (self.index + STREAMING_SHARE * fraction) / self.total))
        self.session.emit(EventType.FIELD_UPDATED, field=self.spec.name)


class GenerationOrchestrator:
    """Runs sessions field by field against a single backend.

    Fields are generated strictly one after another; each gets its own
    self-contained request. A backend failure ends the session in ``error``
    and leaves the remaining fields empty. There is no retry or resume.
    """

    def __init__(
        self,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        field_delay_seconds: float = 0.0,
    ) -> None:
        self.temperature = temperature
        self.field_delay_seconds = field_delay_seconds
        self._tasks: Dict[str, asyncio.Task] = {}

    async def start(
        self,
        session: GenerationSession,
        backend: Optional[GenerationBackend],
    ) -> GenerationSession:
        """Run ``session`` to ``complete`` or ``error`` and return it."""

        session.begin(START_TEXT[session.use_case])
        schema = schema_for(session.use_case)

        if backend is None:
            return self._fail(session, "No generation backend was resolved for this session.")
        if not schema:
            return self._fail(session, f"No fields are defined for {session.use_case.value}.")
        if session.backend is None:
            session.backend = backend.kind
        elif session.backend is not backend.kind:
            return self._fail(
                session,
                f"Session is bound to the {session.backend.value} backend, not {backend.kind.value}.",
            )

        logger.info(
            "Session %s started (%s, %s backend, %d fields)",
            session.id,
            session.use_case.value,
            backend.kind.value,
            len(schema),
        )
        session.emit(EventType.STATUS)

        loop = asyncio.get_running_loop()
        total = len(schema)
        for index, spec in enumerate(schema):
            if session.cancelled:
                return self._mark_cancelled(session, spec)

            session.status_text = f"Generating {spec.label}..."
            session.advance_progress(index / total)
            session.set_field(spec.name, "")
            session.emit(EventType.FIELD_UPDATED, field=spec.name)

            request = _FieldRequest(session, spec, index, total, loop)
            try:
                system_prompt, user_prompt = spec.build_prompts(session.prompt_input, dict(session.field_values))
                final_text = await backend.generate(
                    system_prompt,
                    user_prompt,
                    spec.max_tokens,
                    self.temperature,
                    request.on_chunk,
                )
            except BackendError as exc:
                request.close()
                logger.warning("Session %s failed on field %s: %s", session.id, spec.name, exc)
                return self._fail(session, f"Generating '{spec.name}' failed: {exc}", field=spec.name)
            except asyncio.CancelledError:
                request.close()
                session.cancelled = True
                self._mark_cancelled(session, spec)
                raise
            except Exception as exc:
                request.close()
                logger.exception("Session %s crashed on field %s", session.id, spec.name)
                return self._fail(session, f"Generating '{spec.name}' failed: {exc}", field=spec.name)
            request.close()

            if session.cancelled:
                return self._mark_cancelled(session, spec)

            session.set_field(spec.name, normalize(final_text, spec.closed_set))
            session.advance_progress((index + 1) / total)
            session.status_text = f"Finished {spec.label}"
            session.emit(EventType.FIELD_UPDATED, field=spec.name)
            session.emit(EventType.STATUS)
            logger.debug("Session %s field %s done (%d chars)", session.id, spec.name, len(session.field_values[spec.name]))

            if self.field_delay_seconds and index < total - 1:
                await asyncio.sleep(self.field_delay_seconds)

        session.complete(COMPLETE_TEXT[session.use_case])
        session.emit(EventType.COMPLETED)
        logger.info("Session %s complete", session.id)
        return session

    def launch(
        self,
        session: GenerationSession,
        backend: Optional[GenerationBackend],
    ) -> asyncio.Task:
        """Run ``session`` in the background on the current event loop."""

        task = asyncio.get_running_loop().create_task(self.start(session, backend))
        self._tasks[session.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session.id, None))
        return task

    def cancel(self, session: GenerationSession) -> bool:
        """Abandon ``session``. Cancellation is terminal; returns ``False`` if it already finished."""

        if session.status.is_finished:
            return False
        if session.status is SessionStatus.IDLE:
            # Never started: the task, if any, will not run ``start`` once cancelled.
            session.abandon("Generation cancelled before it started.")
            session.emit(EventType.ERROR)
        session.cancelled = True
        task = self._tasks.get(session.id)
        if task is not None and not task.done():
            task.cancel()
        logger.info("Session %s cancelled", session.id)
        return True

    def _fail(
        self,
        session: GenerationSession,
        message: str,
        field: Optional[str] = None,
    ) -> GenerationSession:
        session.fail(message, field)
        session.emit(EventType.ERROR)
        return session

    def _mark_cancelled(self, session: GenerationSession, spec: FieldSpec) -> GenerationSession:
        if session.status is SessionStatus.PROCESSING:
            self._fail(session, f"Generation cancelled before '{spec.name}' finished.", field=spec.name)
        return session


async def generate_fields(
    session: GenerationSession,
    backend: GenerationBackend,
    *,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Dict[str, str]:
    """Run ``session`` without pacing and return its final values.

    Raises :class:`BackendError` carrying the failing field when the session ends in error.
    """

    orchestrator = GenerationOrchestrator(temperature=temperature)
    await orchestrator.start(session, backend)
    if session.status is SessionStatus.ERROR:
        raise BackendError(session.error_message or "Generation failed.", field=session.failed_field)
    return dict(session.field_values)
