"""Dependency set resolver.

Merges the validated AI suggestions with explicitly included ids. Included
ids come from the user (``--include`` and ``include_deps`` in the config), so
an unknown one aborts resolution instead of being dropped quietly.
"""

from __future__ import annotations

from typing import Iterable

from spring_init.catalog import DependencyCatalog
from spring_init.errors import UnknownDependency

from .models import ResolvedDependencySet


def canonicalize_included(
    included: Iterable[str],
    catalog: DependencyCatalog,
) -> list[str]:
    """Map user-supplied ids to canonical catalog ids, in the given order.

    Raises:
        UnknownDependency: On the first id the catalog does not know.
    """
    canonical: list[str] = []
    for raw in included:
        token = raw.strip()
        if not token:
            continue
        entry = catalog.lookup(token)
        if entry is None:
            raise UnknownDependency(token)
        canonical.append(entry.id)
    return canonical


def resolve(
    validated: ResolvedDependencySet,
    included: Iterable[str],
    catalog: DependencyCatalog,
) -> ResolvedDependencySet:
    """Union *validated* and *included* into one ordered set.

    AI-suggested ids come first in validator order, then included ids in
    the order given, skipping anything already present.
    """
    return validated.union(canonicalize_included(included, catalog))


def parse_include_option(value: str | None) -> list[str]:
    """Split a ``--include web,security`` option value into ids."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
