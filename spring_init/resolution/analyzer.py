"""Requirement analyzer: turns PRD text into raw dependency tokens.

Shapes the request to the AI suggestion service and decodes its reply. The
reply is untrusted free text, so decoding is deliberately forgiving: JSON
lists, fenced code blocks, comma lists and bulleted lists all work, and
fragments that do not look like a token are dropped instead of failing the
whole call. Whether a token names a real dependency is decided later by the
validator.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from spring_init.ai_client import AIClient
from spring_init.catalog import DependencyCatalog
from spring_init.errors import InputError, SuggestionServiceError


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)
_SPLIT_PATTERN = re.compile(r"[,;\n]+")
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_EXPLANATION_SPLIT = re.compile(r"\s+[-–—]\s+|:\s|\s\(|\s=\s")
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 ._/+-]{0,63}$")
_STRIP_CHARS = " \t`'\"[]{}()*_"
_JSON_LIST_KEYS = ("dependencies", "ids", "suggestions", "dependency_ids")
_MAX_TOKEN_WORDS = 4

SYSTEM_PROMPT_TEMPLATE = (
    "You are an expert in Spring Boot applications. Your task is to analyze a PRD "
    "(Product Requirements Document) and suggest the most appropriate Spring Boot "
    "dependencies from the available options. Here is the list of available "
    "dependencies with their descriptions:\n\n{catalog}\n\n"
    "Analyze the following PRD and respond ONLY with a comma-separated list of "
    "dependency IDs. Do not include any explanations or other text."
)


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

def build_system_prompt(catalog: DependencyCatalog) -> str:
    """Render the system prompt with one line per catalog entry."""
    lines = []
    for category, entries in catalog.categories().items():
        lines.append(f"## {category}")
        for entry in entries:
            desc = f" -- {entry.description}" if entry.description else ""
            lines.append(f"- {entry.id}: {entry.name}{desc}")
    return SYSTEM_PROMPT_TEMPLATE.format(catalog="\n".join(lines))


# ---------------------------------------------------------------------------
# Reply decoding
# ---------------------------------------------------------------------------

def _clean_token(piece: str) -> str | None:
    """Reduce one fragment of the reply to a bare token, or ``None`` to drop it."""
    text = piece.strip()
    if not text or text.endswith(":"):
        return None
    text = _BULLET_PREFIX.sub("", text)
    text = text.strip(_STRIP_CHARS)
    text = _EXPLANATION_SPLIT.split(text, maxsplit=1)[0]
    text = text.strip(_STRIP_CHARS + ".")
    if not text or not _TOKEN_PATTERN.match(text):
        return None
    if len(text.split()) > _MAX_TOKEN_WORDS:
        return None
    return text


def _tokens_from_json(data: Any) -> list[str] | None:
    """Pull candidate tokens out of a decoded JSON value, or ``None`` if it has none."""
    if isinstance(data, dict):
        for key in _JSON_LIST_KEYS:
            if key in data:
                return _tokens_from_json(data[key])
        return None
    if isinstance(data, str):
        return [data]
    if not isinstance(data, list):
        return None

    tokens: list[str] = []
    for item in data:
        if isinstance(item, str):
            tokens.append(item)
        elif isinstance(item, dict):
            value = item.get("id") or item.get("name")
            if isinstance(value, str):
                tokens.append(value)
    return tokens


def parse_suggestions(text: str) -> list[str]:
    """Decode an AI reply into raw tokens, preserving order.

    Garbled fragments are dropped; an empty list is a valid result.
    """
    body = text.strip()
    if not body:
        return []

    fenced = _FENCE_PATTERN.search(body)
    if fenced:
        body = fenced.group(1).strip()

    pieces: list[str] | None = None
    try:
        pieces = _tokens_from_json(json.loads(body))
    except ValueError:
        pass  # not JSON; treat as free text
    if pieces is None:
        pieces = _SPLIT_PATTERN.split(body)

    tokens: list[str] = []
    for piece in pieces:
        token = _clean_token(piece)
        if token is not None:
            tokens.append(token)
    return tokens


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class RequirementAnalyzer:
    """Sends PRD text to the AI service and returns the raw tokens it suggests."""

    def __init__(self, client: AIClient, catalog: DependencyCatalog) -> None:
        self.client = client
        self.catalog = catalog

    async def analyze(self, prd_text: str) -> list[str]:
        """Return raw dependency tokens suggested for *prd_text*.

        Raises:
            SuggestionServiceError: If the PRD is empty, the call fails, or the
                service replies with no text at all.
        """
        if not prd_text.strip():
            raise SuggestionServiceError("PRD is empty; nothing to analyze")

        response = await self.client.complete(
            prompt=prd_text,
            system=build_system_prompt(self.catalog),
        )
        if not response.success:
            raise SuggestionServiceError(response.error or "AI suggestion call failed")
        if not response.text.strip():
            raise SuggestionServiceError(
                f"AI service ({response.model or self.client.model}) returned an empty reply"
            )
        return parse_suggestions(response.text)


async def read_prd(path: str | Path) -> str:
    """Read a PRD file in a worker thread.

    Raises:
        InputError: If the file is missing or unreadable.
    """
    prd_path = Path(path)
    if not prd_path.is_file():
        raise InputError(f"PRD file not found: {prd_path}")
    try:
        return await asyncio.to_thread(prd_path.read_text, "utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Could not read PRD file {prd_path}: {exc}") from exc
