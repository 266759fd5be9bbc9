"""Effective lease TTL resolution across layered configuration sources."""

from __future__ import annotations

import logging
from typing import List, NamedTuple

logger = logging.getLogger(__name__)


class ResolvedTTL(NamedTuple):
    ttl: int
    max_ttl: int
    warnings: List[str]


def _first_positive(*values: int) -> int:
    for value in values:
        if value and value > 0:
            return int(value)
    return 0


def resolve(
    request_ttl: int,
    request_max_ttl: int,
    entity_default_ttl: int,
    entity_max_ttl: int,
    backend_default_ttl: int,
    backend_max_ttl: int,
    system_max_ttl: int,
    system_default_ttl: int = 0,
    entity_label: str = "role",
) -> ResolvedTTL:
    """Compute ``(ttl, max_ttl, warnings)`` for one issuance.

    Sources are consulted in priority order: request override, entity
    (role or user-token configuration), backend (admin configuration), then
    the system. Zero or negative values are unset. The resulting ``max_ttl``
    never exceeds any positive upper bound and ``ttl`` never exceeds a
    positive ``max_ttl``; a zero ``max_ttl`` means unbounded.
    """
    warnings: List[str] = []

    max_ttl = _first_positive(
        request_max_ttl, entity_max_ttl, backend_max_ttl, system_max_ttl
    )

    # system is the hardest ceiling, so it is applied first
    for label, bound in (
        ("system", system_max_ttl),
        ("backend", backend_max_ttl),
        (entity_label, entity_max_ttl),
    ):
        if bound and bound > 0 and max_ttl > bound:
            warnings.append(f"max_ttl lowered to {label} max_ttl")
            max_ttl = int(bound)

    ttl = _first_positive(
        request_ttl, entity_default_ttl, backend_default_ttl, system_default_ttl
    )

    if max_ttl > 0 and ttl > max_ttl:
        warnings.append("ttl lowered to max_ttl")
        ttl = max_ttl

    for warning in warnings:
        logger.warning(warning)
    return ResolvedTTL(ttl=ttl, max_ttl=max_ttl, warnings=warnings)
