"""Wiring of the long-lived collaborators shared by every request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import ollama
from fastapi import Request

from .availability import AvailabilityResolver
from .backends import GenerationBackend, OllamaBackend, OpenAIBackend
from .config import Settings
from .memory import CommitService, InMemoryStore, SessionRegistry
from .model_manager import LocalModelManager, ModelStore, OllamaModelStore
from .orchestrator import GenerationOrchestrator


@dataclass
class Services:
    """Process-wide singletons; backends are shared by reference across sessions."""

    settings: Settings
    manager: LocalModelManager
    resolver: AvailabilityResolver
    orchestrator: GenerationOrchestrator
    store: InMemoryStore
    commits: CommitService
    sessions: SessionRegistry


def build_services(
    settings: Settings,
    *,
    managed: Optional[OpenAIBackend] = None,
    local: Optional[GenerationBackend] = None,
    model_store: Optional[ModelStore] = None,
    manager: Optional[LocalModelManager] = None,
    store: Optional[InMemoryStore] = None,
) -> Services:
    """Build the default service graph; tests pass fakes for any collaborator."""

    ollama_client = None
    if local is None or (manager is None and model_store is None):
        ollama_client = ollama.AsyncClient(host=settings.ollama_host)
    if manager is None:
        manager = LocalModelManager(model_store or OllamaModelStore(settings.local_model, ollama_client))
    if managed is None:
        managed = OpenAIBackend(settings)
    if local is None:
        local = OllamaBackend(manager, settings.local_model, ollama_client)
    store = store or InMemoryStore()
    return Services(
        settings=settings,
        manager=manager,
        resolver=AvailabilityResolver(managed, local, manager),
        orchestrator=GenerationOrchestrator(
            temperature=settings.temperature,
            field_delay_seconds=settings.field_delay_seconds,
        ),
        store=store,
        commits=CommitService(store),
        sessions=SessionRegistry(),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's service container."""

    return request.app.state.services
