"""Process-wide readiness and download state of the local model."""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import ollama
from ollama import ResponseError

from .schemas import LocalModelStatusModel, LocalReadiness

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class LocalModelStatus:
    state: LocalReadiness
    progress: float = 0.0
    detail: str = ""

    def to_model(self) -> LocalModelStatusModel:
        return LocalModelStatusModel(state=self.state, progress=self.progress, detail=self.detail)


StatusListener = Callable[[LocalModelStatus], None]


class ModelStore(ABC):
    """Where local weights live: probe for them and pull them."""

    @abstractmethod
    async def is_present(self) -> bool: ...

    @abstractmethod
    async def pull(self, on_progress: ProgressCallback) -> None: ...


class OllamaModelStore(ModelStore):
    """Weights managed by an Ollama daemon."""

    def __init__(self, model: str, client: Optional[ollama.AsyncClient] = None) -> None:
        self.model = model
        self._client = client or ollama.AsyncClient()

    async def is_present(self) -> bool:
        try:
            await self._client.show(self.model)
        except ResponseError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True

    async def pull(self, on_progress: ProgressCallback) -> None:
        stream = await self._client.pull(self.model, stream=True)
        async for part in stream:
            completed = _read(part, "completed")
            total = _read(part, "total")
            if completed and total:
                on_progress(min(1.0, completed / total))


def _read(part: Any, key: str) -> Any:
    if isinstance(part, dict):
        return part.get(key)
    return getattr(part, key, None)


class LocalModelManager:
    """Single owner of the local model's download lifecycle.

    ``start_download`` is single-flight: while a pull is in flight, or once the
    model is ready, further calls return ``False`` without touching the store.
    Listeners subscribed through :meth:`subscribe` receive every status change.
    """

    def __init__(self, store: ModelStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._status = LocalModelStatus(LocalReadiness.NOT_DOWNLOADED, 0.0, "Local model not downloaded")
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[StatusListener] = []
        self._last_logged_step = -1

    def readiness(self) -> LocalModelStatus:
        return self._status

    @property
    def is_ready(self) -> bool:
        return self._status.state is LocalReadiness.READY

    @property
    def is_downloading(self) -> bool:
        return self._status.state is LocalReadiness.DOWNLOADING

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def refresh(self) -> LocalModelStatus:
        """Probe the store unless a download is already running."""

        if self.is_downloading:
            return self._status
        present = await self._store.is_present()
        if present:
            self._set(LocalModelStatus(LocalReadiness.READY, 1.0, "Model ready"))
        elif not self.is_ready:
            self._set(LocalModelStatus(LocalReadiness.NOT_DOWNLOADED, 0.0, "Local model not downloaded"))
        return self._status

    def start_download(self) -> bool:
        """Begin pulling the local model on the running event loop.

        Returns ``True`` only for the call that actually started the download.
        Must be called with an event loop running; otherwise ``RuntimeError`` is
        raised and the status is left untouched.
        """

        loop = asyncio.get_running_loop()
        with self._lock:
            if self._status.state is not LocalReadiness.NOT_DOWNLOADED:
                return False
            self._status = LocalModelStatus(LocalReadiness.DOWNLOADING, 0.0, "Downloading model...")
        logger.info("Starting local model download")
        self._last_logged_step = -1
        self._notify()
        self._task = loop.create_task(self._download())
        return True

    async def wait_until_settled(self) -> LocalModelStatus:
        """Wait for an in-flight download, if any, and return the final status."""

        if self._task is not None:
            await asyncio.shield(self._task)
        return self._status

    async def _download(self) -> None:
        try:
            await self._store.pull(self._on_progress)
        except asyncio.CancelledError:
            logger.warning("Local model download cancelled")
            self._set(LocalModelStatus(LocalReadiness.NOT_DOWNLOADED, 0.0, "Download cancelled"))
            raise
        except Exception as exc:
            logger.exception("Local model download failed: %s", exc)
            self._set(LocalModelStatus(LocalReadiness.NOT_DOWNLOADED, 0.0, f"Failed to load model: {exc}"))
            return
        logger.info("Local model download finished")
        self._set(LocalModelStatus(LocalReadiness.READY, 1.0, "Model ready"))

    def _on_progress(self, fraction: float) -> None:
        if not self.is_downloading:
            return
        progress = max(self._status.progress, min(1.0, fraction))
        step = int(progress * 4)
        if step != self._last_logged_step:
            self._last_logged_step = step
            logger.info("Local model download at %d%%", int(progress * 100))
        self._set(LocalModelStatus(LocalReadiness.DOWNLOADING, progress, "Downloading model..."))

    def _set(self, status: LocalModelStatus) -> None:
        with self._lock:
            self._status = status
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._status)
