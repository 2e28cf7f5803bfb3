"""Suggestion validator: the integrity boundary between AI output and the pipeline.

Every raw token is either promoted to a canonical catalog id or recorded as
a rejection. Individual bad tokens never fail the call, since partial success
is the normal outcome for free-text model output.
"""

from __future__ import annotations

from typing import Iterable

from spring_init.catalog import DependencyCatalog, normalize_token

from .models import RejectedToken, RejectReason, ResolvedDependencySet, TokenVerdict


def classify(token: str, catalog: DependencyCatalog) -> TokenVerdict:
    """Classify a single raw token against the catalog."""
    if not normalize_token(token):
        return TokenVerdict.rejected(token, RejectReason.UNKNOWN)
    entry = catalog.lookup(token)
    if entry is None:
        return TokenVerdict.rejected(token, RejectReason.UNKNOWN)
    return TokenVerdict.valid(token, entry.id)


def validate(
    raw_tokens: Iterable[str],
    catalog: DependencyCatalog,
) -> tuple[ResolvedDependencySet, list[RejectedToken]]:
    """Split raw tokens into a validated dependency set and a rejection list.

    Repeated tokens that map to an id already accepted are absorbed, not
    reported. Rejections keep the token's original spelling and order.
    """
    accepted: list[str] = []
    rejected: list[RejectedToken] = []
    for token in raw_tokens:
        verdict = classify(token, catalog)
        if verdict.is_valid:
            accepted.append(verdict.dependency_id)  # type: ignore[arg-type]
        else:
            rejected.append(verdict.as_rejection())
    return ResolvedDependencySet.of(accepted), rejected
