"""Dependency catalog: the authoritative table of buildable dependency ids.

The catalog is built once at process start from one of three sources (a
local start.spring.io metadata file, the generator service itself, or the
list bundled with this package) and is read-only afterwards. Components
receive it as an explicit argument.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterator

import httpx
from pydantic import ValidationError

from spring_init.errors import CatalogUnavailable
from spring_init.utils import load_json

from .models import CatalogEntry

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BUNDLED_CATALOG = Path(__file__).parent / "data" / "dependencies.json"
METADATA_MEDIA_TYPE = "application/vnd.initializr.v2.2+json"

_COMPACT_PATTERN = re.compile(r"[^a-z0-9]+")


def normalize_token(token: str) -> str:
    """Trim and lowercase a token."""
    return token.strip().lower()


def compact_token(token: str) -> str:
    """Drop everything but letters and digits: ``'PostgreSQL Driver'`` -> ``'postgresqldriver'``."""
    return _COMPACT_PATTERN.sub("", token.lower())


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class DependencyCatalog:
    """Immutable lookup table of ``CatalogEntry`` objects.

    Tokens resolve case-insensitively against the short id and the display
    name. A second, punctuation-insensitive alias table catches spellings
    such as ``postgre-sql`` or ``Data_JPA``. Exact matches always win over
    aliases, and ids win over display names.
    """

    def __init__(self, entries: list[CatalogEntry]) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries:
            self._entries.setdefault(entry.id, entry)

        self._exact: dict[str, CatalogEntry] = {}
        self._aliases: dict[str, CatalogEntry] = {}
        ordered = list(self._entries.values())
        for entry in ordered:
            self._exact.setdefault(normalize_token(entry.id), entry)
        for entry in ordered:
            self._exact.setdefault(normalize_token(entry.name), entry)
        for entry in ordered:
            self._aliases.setdefault(compact_token(entry.id), entry)
        for entry in ordered:
            self._aliases.setdefault(compact_token(entry.name), entry)
        self._aliases.pop("", None)

    # -- Lookup ------------------------------------------------------------

    def lookup(self, token: str) -> CatalogEntry | None:
        """Return the entry *token* refers to, or ``None``."""
        key = normalize_token(token)
        if not key:
            return None
        entry = self._exact.get(key)
        if entry is not None:
            return entry
        return self._aliases.get(compact_token(key))

    def get(self, dependency_id: str) -> CatalogEntry:
        """Return the entry for a canonical id. Raises ``KeyError`` if absent."""
        return self._entries[dependency_id]

    def all(self) -> list[CatalogEntry]:
        return list(self._entries.values())

    def ids(self) -> list[str]:
        return list(self._entries)

    def categories(self) -> dict[str, list[CatalogEntry]]:
        """Group entries by category, preserving catalog order."""
        grouped: dict[str, list[CatalogEntry]] = {}
        for entry in self._entries.values():
            grouped.setdefault(entry.category, []).append(entry)
        return grouped

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.lookup(token) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())

    def __repr__(self) -> str:
        return f"DependencyCatalog({len(self)} entries)"

    # -- Construction ------------------------------------------------------

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "DependencyCatalog":
        """Build a catalog from start.spring.io client metadata.

        The relevant shape is ``{"dependencies": {"values": [group, ...]}}``
        where each group has a ``name`` and a ``values`` list of
        ``{"id", "name", "description"}`` objects.

        Raises:
            CatalogUnavailable: If the metadata has no usable entries.
        """
        groups = metadata.get("dependencies", {})
        if isinstance(groups, dict):
            groups = groups.get("values", [])
        if not isinstance(groups, list):
            raise CatalogUnavailable("Catalog metadata has no 'dependencies.values' list")

        entries: list[CatalogEntry] = []
        for group in groups:
            if not isinstance(group, dict):
                continue
            category = str(group.get("name") or "Other")
            for item in group.get("values") or []:
                if not isinstance(item, dict) or not item.get("id"):
                    continue
                try:
                    entries.append(CatalogEntry(
                        id=str(item["id"]),
                        name=str(item.get("name") or item["id"]),
                        description=str(item.get("description") or ""),
                        category=category,
                    ))
                except ValidationError as exc:
                    raise CatalogUnavailable(f"Malformed catalog entry {item!r}: {exc}") from exc

        if not entries:
            raise CatalogUnavailable("Catalog metadata contains no dependencies")
        return cls(entries)

    @classmethod
    def from_file(cls, path: str | Path) -> "DependencyCatalog":
        """Load a catalog from a metadata JSON file (``client.json``)."""
        file_path = Path(path)
        try:
            data = load_json(file_path)
        except OSError as exc:
            raise CatalogUnavailable(f"Could not read catalog {file_path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CatalogUnavailable(f"Catalog {file_path} is not valid JSON: {exc}") from exc
        return cls.from_metadata(data)

    @classmethod
    def bundled(cls) -> "DependencyCatalog":
        """Load the dependency list shipped with spring-init."""
        return cls.from_file(BUNDLED_CATALOG)

    @classmethod
    async def fetch(cls, base_url: str, timeout: int = 30) -> "DependencyCatalog":
        """Fetch live metadata from a start.spring.io compatible service."""
        url = base_url.rstrip("/") + "/"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0)) as client:
                response = await client.get(url, headers={"Accept": METADATA_MEDIA_TYPE})
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise CatalogUnavailable(
                f"Generator returned HTTP {exc.response.status_code} for catalog metadata"
            ) from exc
        except httpx.HTTPError as exc:
            raise CatalogUnavailable(f"Could not fetch catalog from {url}: {exc}") from exc
        except ValueError as exc:
            raise CatalogUnavailable(f"Catalog metadata from {url} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise CatalogUnavailable(f"Catalog metadata from {url} must be a JSON object")
        return cls.from_metadata(data)


async def load_catalog(
    source: str,
    path: Path | None = None,
    generator_url: str = "https://start.spring.io",
    timeout: int = 30,
) -> DependencyCatalog:
    """Load the catalog from the configured *source*.

    Args:
        source: ``"bundled"``, ``"file"`` or ``"remote"``.
        path: Metadata file, required when *source* is ``"file"``.
        generator_url: Service queried when *source* is ``"remote"``.
        timeout: Remote fetch timeout in seconds.

    Raises:
        CatalogUnavailable: If the selected source cannot be loaded.
    """
    if source == "file":
        if path is None:
            raise CatalogUnavailable("catalog_source is 'file' but no catalog_path is set")
        return DependencyCatalog.from_file(path)
    if source == "remote":
        return await DependencyCatalog.fetch(generator_url, timeout=timeout)
    return DependencyCatalog.bundled()
