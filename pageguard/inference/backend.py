"""Inference backends.

The worker only needs two operations from an engine: load a model and turn a
prompt into text. ``OpenAICompatibleBackend`` speaks the OpenAI-style HTTP API
exposed by most local model servers (llama.cpp, vLLM, Ollama, MLC serve).
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from ..errors import InferenceError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 512


class InferenceBackend(Protocol):
    async def load(self, model_id: str) -> None: ...

    async def complete(self, prompt: str) -> str: ...


class OpenAICompatibleBackend:
    """Chat-completions client for an OpenAI-compatible server."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.model_id: Optional[str] = None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def load(self, model_id: str) -> None:
        """Verify the server is reachable and serves ``model_id``."""
        client = self._get_client()
        try:
            resp = await client.get("/v1/models")
        except httpx.HTTPError as exc:
            raise InferenceError(f"Inference server unreachable: {exc}") from exc
        if resp.status_code != 200:
            raise InferenceError(f"Model listing failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise InferenceError("Model listing returned invalid JSON") from exc

        available = [
            str(item.get("id"))
            for item in (data.get("data") or [])
            if isinstance(item, dict) and item.get("id")
        ]
        if available and model_id not in available:
            raise InferenceError(f"Model {model_id} not available on server")
        self.model_id = model_id
        logger.info("Inference model %s available at %s", model_id, self.base_url)

    async def complete(self, prompt: str) -> str:
        if not self.model_id:
            raise InferenceError("Model not loaded")
        payload = {
            "model": self.model_id,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        client = self._get_client()
        try:
            resp = await client.post("/v1/chat/completions", json=payload)
        except httpx.HTTPError as exc:
            raise InferenceError(f"Inference request failed: {exc}") from exc
        if resp.status_code != 200:
            raise InferenceError(f"Inference failed: HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise InferenceError("Malformed completion response") from exc
        return str(content or "").strip()
