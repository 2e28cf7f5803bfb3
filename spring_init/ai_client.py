"""Async client for the AI suggestion service.

Two backends are supported behind the same call:

* ``ollama`` -- a local Ollama server (``POST /api/generate``).
* ``anthropic`` -- the Anthropic Messages API (``POST /v1/messages``), keyed
  by the environment variable named in ``AIConfig.api_key_env``.

Failures are reported in the returned ``AIResponse`` rather than raised, and
requests are never retried.

Typical usage::

    client = AIClient.from_config(config.ai)
    resp = await client.complete(system="You are ...", prompt=prd_text)
    if resp.success:
        print(resp.text)
"""

from __future__ import annotations

import os

import httpx
from pydantic import BaseModel, Field

from spring_init.config import AIConfig

ANTHROPIC_VERSION = "2023-06-01"


class AIResponse(BaseModel):
    """Structured response from one completion call."""

    text: str = Field(default="", description="Generated text")
    model: str = Field(default="", description="Model that produced the response")
    success: bool = Field(default=True, description="Whether the request succeeded")
    error: str | None = Field(default=None, description="Error message on failure")


class AIClient:
    """Async client for the configured AI provider.

    Uses ``httpx.AsyncClient`` for non-blocking HTTP. A fresh client is
    opened per call since the tool makes at most one request per run.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:14b",
        provider: str = "ollama",
        timeout: int = 120,
        api_key: str | None = None,
        max_tokens: int = 1024,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.provider = provider
        self.timeout = timeout
        self.api_key = api_key
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: AIConfig) -> "AIClient":
        api_key = os.environ.get(config.api_key_env) if config.provider == "anthropic" else None
        return cls(
            base_url=config.effective_url,
            model=config.effective_model,
            provider=config.provider,
            timeout=config.timeout,
            api_key=api_key,
            max_tokens=config.max_tokens,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self, headers: dict[str, str] | None = None) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers=headers,
        )

    @staticmethod
    def _extract_ollama_text(data: dict) -> str | None:
        """Ollama's non-streaming response puts the full text in ``"response"``.

        Returns ``None`` when the field holds something other than text.
        """
        text = data.get("response")
        if text is None:
            return ""
        return text if isinstance(text, str) else None

    @staticmethod
    def _extract_anthropic_text(data: dict) -> str | None:
        """Concatenate the ``text`` blocks of a Messages API response.

        Returns ``None`` when ``content`` or a text block is malformed.
        """
        blocks = data.get("content")
        if blocks is None:
            return ""
        if not isinstance(blocks, list):
            return None
        parts: list[str] = []
        for block in blocks:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text = block.get("text", "")
            if not isinstance(text, str):
                return None
            parts.append(text)
        return "".join(parts)

    def _request(self, system: str, prompt: str) -> tuple[str, dict, dict[str, str] | None]:
        """Build ``(path, payload, headers)`` for the configured provider."""
        if self.provider == "anthropic":
            payload: dict = {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            }
            if system:
                payload["system"] = system
            headers = {
                "x-api-key": self.api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            }
            return "/v1/messages", payload, headers

        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            payload["system"] = system
        return "/api/generate", payload, None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(self, prompt: str, system: str = "") -> AIResponse:
        """Send one prompt and return the generated text.

        Args:
            prompt: The user prompt (the PRD text).
            system: System prompt carrying the instructions and catalog.

        Returns:
            An ``AIResponse`` with the generated text or an error.
        """
        if self.provider == "anthropic" and not self.api_key:
            return AIResponse(
                model=self.model,
                success=False,
                error="No API key found for the anthropic provider.",
            )

        path, payload, headers = self._request(system, prompt)
        try:
            async with self._client(headers) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError:
            return AIResponse(
                model=self.model,
                success=False,
                error=f"Cannot connect to the AI service at {self.base_url}. Is it running?",
            )
        except httpx.TimeoutException:
            return AIResponse(
                model=self.model,
                success=False,
                error=f"Request to the AI service timed out after {self.timeout}s.",
            )
        except httpx.HTTPStatusError as exc:
            return AIResponse(
                model=self.model,
                success=False,
                error=f"AI service returned HTTP {exc.response.status_code}: {exc.response.text[:500]}",
            )
        except Exception as exc:  # noqa: BLE001
            return AIResponse(
                model=self.model,
                success=False,
                error=f"Unexpected error calling the AI service: {exc}",
            )

        if not isinstance(data, dict):
            return AIResponse(
                model=self.model,
                success=False,
                error="AI service returned a non-object JSON body.",
            )

        if self.provider == "anthropic":
            text = self._extract_anthropic_text(data)
        else:
            text = self._extract_ollama_text(data)
        if text is None:
            return AIResponse(
                model=self.model,
                success=False,
                error="AI service returned a reply without usable text.",
            )

        model = data.get("model")
        return AIResponse(
            text=text,
            model=model if isinstance(model, str) else self.model,
            success=True,
        )
