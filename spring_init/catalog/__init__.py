"""Dependency catalog for spring-init.

Usage::

    from spring_init.catalog import DependencyCatalog

    catalog = DependencyCatalog.bundled()
    entry = catalog.lookup("Spring Data JPA")
    print(entry.id)  # "data-jpa"
"""

from spring_init.catalog.catalog import (
    BUNDLED_CATALOG,
    DependencyCatalog,
    compact_token,
    load_catalog,
    normalize_token,
)
from spring_init.catalog.models import CatalogEntry

__all__ = [
    "BUNDLED_CATALOG",
    "CatalogEntry",
    "DependencyCatalog",
    "compact_token",
    "load_catalog",
    "normalize_token",
]
