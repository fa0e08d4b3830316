import asyncio

import pytest

from fakes import ScriptedBackend
from ideabox.errors import PersistenceError, SessionStateError
from ideabox.memory import CommitService, InMemoryStore, SessionRegistry
from ideabox.orchestrator import GenerationOrchestrator
from ideabox.schemas import SessionStatus, UseCase
from ideabox.session import GenerationSession


def _finished(use_case: UseCase, backend=None, **kwargs) -> GenerationSession:
    session = GenerationSession(use_case, "Recipe marketplace", **kwargs)
    asyncio.run(GenerationOrchestrator().start(session, backend or ScriptedBackend()))
    return session


def test_business_model_commit_creates_box() -> None:
    store = InMemoryStore()
    session = _finished(UseCase.BUSINESS_MODEL, title="Recipe box")

    box_id = CommitService(store).commit_session(session)

    box = store.require_box(box_id)
    assert box.name == "Recipe box"
    assert box.fields == session.field_values


def test_box_name_falls_back_to_concept() -> None:
    store = InMemoryStore()
    backend = ScriptedBackend(responses={"highLevelConcept": "Etsy for home cooks"})
    session = _finished(UseCase.BUSINESS_MODEL, backend)

    box_id = CommitService(store).commit_session(session)

    assert store.require_box(box_id).name == "Etsy for home cooks"


def test_double_commit_creates_two_entities() -> None:
    store = InMemoryStore()
    service = CommitService(store)
    session = _finished(UseCase.BUSINESS_MODEL)

    first = service.commit_session(session)
    second = service.commit_session(session)

    assert first != second
    assert len(store.list_boxes()) == 2


def test_commit_uses_edited_values() -> None:
    store = InMemoryStore()
    session = _finished(UseCase.BUSINESS_MODEL)
    session.edit_fields({"summary": "Edited by hand"})

    box_id = CommitService(store).commit_session(session)

    assert store.require_box(box_id).fields["summary"] == "Edited by hand"


def test_dump_analysis_commit_files_idea_into_box() -> None:
    store = InMemoryStore()
    box = store.create_box("Recipe box", {"summary": "Sell recipes"})
    backend = ScriptedBackend(responses={"classification": "product and engineering"})
    session = _finished(UseCase.DUMP_ANALYSIS, backend, target_box_id=box.id)

    idea_id = CommitService(store).commit_session(session)

    ideas = store.ideas_for_box(box.id)
    assert [idea.id for idea in ideas] == [idea_id]
    assert ideas[0].classification == "Product & Engineering"
    assert store.require_box(box.id).modified_at == ideas[0].created_at


def test_dump_analysis_requires_target_box() -> None:
    session = _finished(UseCase.DUMP_ANALYSIS)

    with pytest.raises(PersistenceError):
        CommitService(InMemoryStore()).commit_session(session)


def test_missing_box_is_a_persistence_error() -> None:
    session = _finished(UseCase.DUMP_ANALYSIS, target_box_id="missing")

    with pytest.raises(PersistenceError, match="missing"):
        CommitService(InMemoryStore()).commit_session(session)


def test_failed_session_cannot_be_committed() -> None:
    session = _finished(UseCase.BUSINESS_MODEL, ScriptedBackend(fail_on="costs"))

    with pytest.raises(SessionStateError):
        CommitService(InMemoryStore()).commit_session(session)


def test_processing_session_cannot_be_committed() -> None:
    session = GenerationSession(UseCase.BUSINESS_MODEL, "Recipe marketplace")
    session.begin("Preparing...")

    with pytest.raises(SessionStateError, match="still running"):
        CommitService(InMemoryStore()).commit_session(session)


def test_edits_require_complete_session() -> None:
    session = GenerationSession(UseCase.BUSINESS_MODEL, "Recipe marketplace")

    with pytest.raises(SessionStateError):
        session.edit_fields({"summary": "Too early"})


def test_edits_reject_unknown_fields() -> None:
    session = _finished(UseCase.DUMP_ANALYSIS)

    with pytest.raises(KeyError):
        session.edit_fields({"revenueStreams": "Not part of this schema"})


def test_reset_clears_content() -> None:
    session = _finished(UseCase.DUMP_ANALYSIS)
    assert session.is_ready_to_commit

    session.reset()

    assert session.status is SessionStatus.IDLE
    assert not session.has_generated_content
    assert session.progress == 0.0


def test_boxes_are_listed_most_recent_first() -> None:
    store = InMemoryStore()
    older = store.create_box("Older", {})
    newer = store.create_box("Newer", {})
    store.add_idea(older.id, {"title": "Bump"})

    assert [box.id for box in store.list_boxes()] == [older.id, newer.id]


def test_session_registry() -> None:
    registry = SessionRegistry()
    session = registry.add(GenerationSession(UseCase.DUMP_ANALYSIS, "x"))

    assert registry.get(session.id) is session
    assert len(registry) == 1
    assert registry.discard(session.id) is session
    assert registry.get(session.id) is None
