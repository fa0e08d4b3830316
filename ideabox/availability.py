"""Pick the effective generation backend for a new session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .backends import GenerationBackend, OpenAIBackend
from .errors import BackendUnavailable
from .model_manager import LocalModelManager, LocalModelStatus
from .schemas import (
    BackendKind,
    BackendPreference,
    LocalReadiness,
    ManagedAvailability,
    ResolutionModel,
    ResolutionState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a backend; ``kind`` is set only when ``state`` is ready."""

    state: ResolutionState
    kind: Optional[BackendKind]
    reason: str
    download_required: bool = False

    @property
    def is_ready(self) -> bool:
        return self.state is ResolutionState.READY

    def to_model(self) -> ResolutionModel:
        return ResolutionModel(
            state=self.state,
            kind=self.kind,
            reason=self.reason,
            download_required=self.download_required,
        )


def resolve_backend(
    preference: BackendPreference,
    managed: ManagedAvailability,
    local: LocalReadiness,
) -> Resolution:
    """Apply the selection rule, highest priority first.

    1. Anything still initializing or downloading means "wait". Asking for the
       local model hides the managed backend's state, including initializing.
    2. A managed backend that is not eligible (or the user asking for the local
       model) while the local model was never pulled means "wait and download".
       This is the only automatic download trigger.
    3. An available managed backend wins unless the user asked for local.
    4. Otherwise the local model if ready, else nothing is available.
    """

    effective = managed
    if preference is BackendPreference.LOCAL:
        effective = ManagedAvailability.NOT_ELIGIBLE

    if local is LocalReadiness.DOWNLOADING:
        return Resolution(ResolutionState.WAITING, None, "Local model is downloading.")
    if effective is ManagedAvailability.INITIALIZING:
        return Resolution(ResolutionState.WAITING, None, "Managed model is initializing.")

    if effective is ManagedAvailability.NOT_ELIGIBLE and local is LocalReadiness.NOT_DOWNLOADED:
        return Resolution(
            ResolutionState.WAITING,
            None,
            "Local model must be downloaded before generating.",
            download_required=True,
        )

    if effective is ManagedAvailability.AVAILABLE:
        return Resolution(ResolutionState.READY, BackendKind.MANAGED, "Managed model available.")

    if local is LocalReadiness.READY:
        return Resolution(ResolutionState.READY, BackendKind.LOCAL, "Using local model.")

    return Resolution(ResolutionState.UNAVAILABLE, None, f"No backend available (managed: {managed.value}).")


class AvailabilityResolver:
    """Bind :func:`resolve_backend` to live readiness signals and backend instances."""

    def __init__(
        self,
        managed: OpenAIBackend,
        local: GenerationBackend,
        manager: LocalModelManager,
    ) -> None:
        self.managed = managed
        self.local = local
        self.manager = manager

    def managed_availability(self) -> ManagedAvailability:
        return self.managed.availability()

    def local_status(self) -> LocalModelStatus:
        return self.manager.readiness()

    def resolve(self, preference: BackendPreference = BackendPreference.AUTO) -> Resolution:
        resolution = resolve_backend(preference, self.managed_availability(), self.local_status().state)
        if resolution.download_required and self.manager.start_download():
            logger.info("Local model download triggered while resolving backend")
        return resolution

    def backend_for(self, resolution: Resolution) -> Optional[GenerationBackend]:
        if resolution.kind is BackendKind.MANAGED:
            return self.managed
        if resolution.kind is BackendKind.LOCAL:
            return self.local
        return None

    def require(self, preference: BackendPreference = BackendPreference.AUTO) -> GenerationBackend:
        """Return the backend for a new session or raise :class:`BackendUnavailable`."""

        resolution = self.resolve(preference)
        backend = self.backend_for(resolution)
        if backend is None:
            raise BackendUnavailable(resolution)
        return backend
