"""Exception hierarchy shared across the IdeaBox backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .availability import Resolution


class IdeaBoxError(Exception):
    """Base class for every error raised by this package."""


class BackendUnavailable(IdeaBoxError):
    """No generation backend is ready yet; callers should show a wait state."""

    def __init__(self, resolution: "Resolution") -> None:
        super().__init__(resolution.reason)
        self.resolution = resolution


class BackendError(IdeaBoxError):
    """A backend could not finish generating text for a request."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PersistenceError(IdeaBoxError):
    """The domain store refused or failed to persist committed fields."""


class SessionStateError(IdeaBoxError):
    """The requested operation is not allowed in the session's current status."""
