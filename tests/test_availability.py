import asyncio

import pytest

from ideabox.availability import AvailabilityResolver, resolve_backend
from ideabox.errors import BackendUnavailable
from ideabox.model_manager import LocalModelManager
from ideabox.schemas import (
    BackendKind,
    BackendPreference,
    LocalReadiness,
    ManagedAvailability,
    ResolutionState,
)

from fakes import FakeManagedBackend, FakeModelStore, ScriptedBackend

AUTO = BackendPreference.AUTO
LOCAL = BackendPreference.LOCAL


@pytest.mark.parametrize(
    ("preference", "managed", "local", "state", "kind", "download"),
    [
        (AUTO, ManagedAvailability.AVAILABLE, LocalReadiness.NOT_DOWNLOADED, ResolutionState.READY, BackendKind.MANAGED, False),
        (AUTO, ManagedAvailability.AVAILABLE, LocalReadiness.READY, ResolutionState.READY, BackendKind.MANAGED, False),
        (LOCAL, ManagedAvailability.AVAILABLE, LocalReadiness.READY, ResolutionState.READY, BackendKind.LOCAL, False),
        (LOCAL, ManagedAvailability.AVAILABLE, LocalReadiness.NOT_DOWNLOADED, ResolutionState.WAITING, None, True),
        (AUTO, ManagedAvailability.NOT_ELIGIBLE, LocalReadiness.READY, ResolutionState.READY, BackendKind.LOCAL, False),
        (AUTO, ManagedAvailability.NOT_ELIGIBLE, LocalReadiness.NOT_DOWNLOADED, ResolutionState.WAITING, None, True),
        (AUTO, ManagedAvailability.NOT_ENABLED, LocalReadiness.READY, ResolutionState.READY, BackendKind.LOCAL, False),
        (AUTO, ManagedAvailability.NOT_ENABLED, LocalReadiness.NOT_DOWNLOADED, ResolutionState.UNAVAILABLE, None, False),
        (AUTO, ManagedAvailability.UNKNOWN, LocalReadiness.NOT_DOWNLOADED, ResolutionState.UNAVAILABLE, None, False),
        (AUTO, ManagedAvailability.INITIALIZING, LocalReadiness.READY, ResolutionState.WAITING, None, False),
        (LOCAL, ManagedAvailability.INITIALIZING, LocalReadiness.READY, ResolutionState.READY, BackendKind.LOCAL, False),
        (LOCAL, ManagedAvailability.INITIALIZING, LocalReadiness.NOT_DOWNLOADED, ResolutionState.WAITING, None, True),
        (AUTO, ManagedAvailability.AVAILABLE, LocalReadiness.DOWNLOADING, ResolutionState.WAITING, None, False),
        (AUTO, ManagedAvailability.NOT_ELIGIBLE, LocalReadiness.DOWNLOADING, ResolutionState.WAITING, None, False),
    ],
)
def test_selection_rule(preference, managed, local, state, kind, download) -> None:
    resolution = resolve_backend(preference, managed, local)

    assert resolution.state is state
    assert resolution.kind is kind
    assert resolution.download_required is download
    assert resolution.is_ready is (state is ResolutionState.READY)


def _resolver(managed_state: ManagedAvailability, store: FakeModelStore):
    managed = FakeManagedBackend(managed_state)
    local = ScriptedBackend(BackendKind.LOCAL)
    manager = LocalModelManager(store)
    return AvailabilityResolver(managed, local, manager), managed, local, manager


def test_require_returns_managed_backend() -> None:
    resolver, managed, _, _ = _resolver(ManagedAvailability.AVAILABLE, FakeModelStore())

    assert resolver.require() is managed


def test_require_returns_local_backend_once_ready() -> None:
    resolver, _, local, manager = _resolver(ManagedAvailability.NOT_ENABLED, FakeModelStore(present=True))
    asyncio.run(manager.refresh())

    assert resolver.require() is local


def test_not_eligible_triggers_single_download() -> None:
    store = FakeModelStore(hold=True)
    resolver, _, _, manager = _resolver(ManagedAvailability.NOT_ELIGIBLE, store)

    async def scenario():
        first = resolver.resolve()
        await asyncio.sleep(0)
        second = resolver.resolve()
        store.release()
        await manager.wait_until_settled()
        return first, second, resolver.resolve()

    first, second, third = asyncio.run(scenario())

    assert first.state is ResolutionState.WAITING and first.download_required
    assert second.state is ResolutionState.WAITING and not second.download_required
    assert third.state is ResolutionState.READY and third.kind is BackendKind.LOCAL
    assert store.pull_calls == 1


def test_unavailable_does_not_download() -> None:
    store = FakeModelStore()
    resolver, _, _, manager = _resolver(ManagedAvailability.NOT_ENABLED, store)

    with pytest.raises(BackendUnavailable) as excinfo:
        resolver.require()

    assert excinfo.value.resolution.state is ResolutionState.UNAVAILABLE
    assert manager.readiness().state is LocalReadiness.NOT_DOWNLOADED
    assert store.pull_calls == 0
