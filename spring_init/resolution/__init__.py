"""Requirement-to-dependency resolution.

Turns untrusted AI suggestions plus explicit user includes into a validated,
ordered set of catalog ids.

Usage::

    from spring_init.resolution import RequirementAnalyzer, resolve, validate

    tokens = await RequirementAnalyzer(client, catalog).analyze(prd_text)
    suggested, rejected = validate(tokens, catalog)
    deps = resolve(suggested, ["security"], catalog)
"""

from spring_init.resolution.analyzer import (
    RequirementAnalyzer,
    build_system_prompt,
    parse_suggestions,
    read_prd,
)
from spring_init.resolution.models import (
    RejectedToken,
    RejectReason,
    ResolvedDependencySet,
    TokenVerdict,
)
from spring_init.resolution.resolver import (
    canonicalize_included,
    parse_include_option,
    resolve,
)
from spring_init.resolution.validator import classify, validate

__all__ = [
    "RejectReason",
    "RejectedToken",
    "RequirementAnalyzer",
    "ResolvedDependencySet",
    "TokenVerdict",
    "build_system_prompt",
    "canonicalize_included",
    "classify",
    "parse_include_option",
    "parse_suggestions",
    "read_prd",
    "resolve",
    "validate",
]
