# utils/artifact_names.py
"""Map artifact names mentioned by the model onto names that actually exist."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable

import structlog
from rapidfuzz import fuzz, process

logger = structlog.get_logger(__name__)

DEFAULT_SCORE_CUTOFF = 85.0


def resolve_artifact_name(
    name: str,
    known_names: Iterable[str],
    score_cutoff: float = DEFAULT_SCORE_CUTOFF,
) -> str | None:
    """Return the known artifact ``name`` refers to, or ``None``.

    Tries an exact match, then a case-insensitive match, then a unique
    basename match ("TodoList.jsx" for "components/TodoList.jsx"), then the
    closest fuzzy match above ``score_cutoff``.
    """
    candidates = list(known_names)
    if not name or not candidates:
        return None
    cleaned = name.strip().removeprefix("./")
    if cleaned in candidates:
        return cleaned

    lowered = {c.lower(): c for c in candidates}
    if cleaned.lower() in lowered:
        return lowered[cleaned.lower()]

    base_matches = [c for c in candidates if posixpath.basename(c) == posixpath.basename(cleaned)]
    if len(base_matches) == 1:
        return base_matches[0]

    match = process.extractOne(
        cleaned, candidates, scorer=fuzz.ratio, score_cutoff=score_cutoff
    )
    if match is None:
        logger.debug(f"Artifact name '{name}' does not match any known artifact.")
        return None
    logger.debug(f"Resolved artifact name '{name}' to '{match[0]}' (score {match[1]:.1f}).")
    return match[0]


def resolve_artifact_names(
    names: Iterable[str], known_names: Iterable[str]
) -> list[str]:
    """Resolve each name, dropping unknown ones and duplicates."""
    known = list(known_names)
    resolved: list[str] = []
    for name in names:
        target = resolve_artifact_name(name, known)
        if target and target not in resolved:
            resolved.append(target)
    return resolved
