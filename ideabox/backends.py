"""Streaming text generation backends behind one capability."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import httpx
import ollama
from ollama import RequestError, ResponseError
from openai import APIError, AsyncOpenAI

from .config import Settings
from .errors import BackendError
from .model_manager import LocalModelManager
from .schemas import BackendKind, ManagedAvailability

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]


def _messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt.strip()},
        {"role": "user", "content": user_prompt.strip()},
    ]


class GenerationBackend(ABC):
    """Capability shared by the managed and the local backend.

    ``generate`` calls ``on_chunk`` with the cumulative text produced so far,
    never with deltas, and returns the final cumulative text. Any failure is
    raised as :class:`~ideabox.errors.BackendError`. Requests carry no memory
    of earlier ones.
    """

    kind: BackendKind

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str: ...


class OpenAIBackend(GenerationBackend):
    """Managed backend: OpenAI chat completions streamed over the network."""

    kind = BackendKind.MANAGED

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings
        self._client_cache: tuple[str, AsyncOpenAI] | None = None
        if client is not None:
            self._client_cache = (settings.openai_api_key or "", client)

    def availability(self) -> ManagedAvailability:
        """Report whether the managed backend can serve requests right now."""

        forced = self._settings.managed_state
        if forced:
            try:
                return ManagedAvailability(forced)
            except ValueError:
                return ManagedAvailability.UNKNOWN
        if not self._settings.managed_enabled:
            return ManagedAvailability.NOT_ENABLED
        if not self._settings.has_managed_credentials:
            return ManagedAvailability.NOT_ELIGIBLE
        return ManagedAvailability.AVAILABLE

    def _get_client(self) -> AsyncOpenAI | None:
        """Return a cached client when an API key is configured."""

        if self._client_cache is not None:
            return self._client_cache[1]
        api_key = self._settings.openai_api_key
        if not api_key:
            return None
        client = AsyncOpenAI(api_key=api_key)
        self._client_cache = (api_key, client)
        return client

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        client = self._get_client()
        if client is None:
            raise BackendError("Managed backend is not configured (missing OPENAI_API_KEY).")

        text = ""
        try:
            stream = await client.chat.completions.create(
                model=self._settings.managed_model,
                messages=_messages(system_prompt, user_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if not delta:
                    continue
                text += delta
                if on_chunk is not None:
                    on_chunk(text)
        except APIError as exc:
            logger.warning("Managed generation failed: %s", exc)
            raise BackendError(f"Managed backend request failed: {exc}") from exc
        return text


class OllamaBackend(GenerationBackend):
    """Local backend: a small instruct model served by Ollama on this host."""

    kind = BackendKind.LOCAL

    def __init__(
        self,
        manager: LocalModelManager,
        model: str,
        client: Optional[ollama.AsyncClient] = None,
    ) -> None:
        self._manager = manager
        self.model = model
        self._client = client or ollama.AsyncClient()

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        if not self._manager.is_ready:
            raise BackendError("Local model is not ready. Download it before generating.")

        options = {
            "num_predict": max_tokens,
            "temperature": temperature,
            "top_p": 0.9,
            "repeat_penalty": 1.1,
        }
        text = ""
        try:
            stream = await self._client.chat(
                model=self.model,
                messages=_messages(system_prompt, user_prompt),
                options=options,
                stream=True,
            )
            async for part in stream:
                delta = self._extract_content(part)
                if not delta:
                    continue
                text += delta
                if on_chunk is not None:
                    on_chunk(text)
        except (ResponseError, RequestError, httpx.HTTPError, ConnectionError) as exc:
            logger.warning("Local generation failed: %s", exc)
            raise BackendError(f"Local backend request failed: {exc}") from exc
        return text

    @staticmethod
    def _extract_content(part: Any) -> str:
        message = getattr(part, "message", None)
        if message is None and isinstance(part, dict):
            message = part.get("message")
        if not message:
            return ""
        if isinstance(message, dict):
            content = message.get("content", "")
        else:
            content = getattr(message, "content", "")
        return str(content or "")
