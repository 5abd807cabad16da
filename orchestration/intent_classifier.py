# orchestration/intent_classifier.py
"""Rule-based classification of change requests."""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

import structlog

from orchestration.models import ClassifiedIntent, Intent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IntentRule:
    """First matching rule decides the intent."""

    intent: Intent
    confidence: float
    keywords: tuple[str, ...]
    # None matches regardless of whether artifacts exist.
    requires_artifacts: bool | None = None

    def matches(self, message: str, has_existing_artifacts: bool) -> bool:
        if (
            self.requires_artifacts is not None
            and self.requires_artifacts != has_existing_artifacts
        ):
            return False
        return any(_keyword_pattern(k).search(message) for k in self.keywords)


@functools.lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Matches at a word start so "fixes" counts but "prefix" does not.
    return re.compile(r"\b" + re.escape(keyword).replace(r"\ ", r"\s+"), re.IGNORECASE)


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.CREATE_NEW, 0.95, ("create", "build", "make"), requires_artifacts=False),
    IntentRule(Intent.DEBUG, 0.90, ("debug", "fix", "error", "bug", "crash")),
    IntentRule(Intent.EXPLAIN, 0.90, ("explain", "what does", "how does")),
    IntentRule(Intent.STYLE_CHANGE, 0.85, ("change color", "redesign", "theme", "style")),
    IntentRule(Intent.MODIFY, 0.85, ("change", "update", "modify", "edit"), requires_artifacts=True),
)

DEFAULT_CONFIDENCE = 0.60


def classify_intent(message: str, has_existing_artifacts: bool) -> ClassifiedIntent:
    """Return the intent for ``message``; never fails."""
    for rule in INTENT_RULES:
        if rule.matches(message or "", has_existing_artifacts):
            return ClassifiedIntent(rule.intent, rule.confidence)

    fallback = Intent.MODIFY if has_existing_artifacts else Intent.CREATE_NEW
    logger.debug(
        "No intent rule matched; using default.",
        intent=fallback.value,
        has_existing_artifacts=has_existing_artifacts,
    )
    return ClassifiedIntent(fallback, DEFAULT_CONFIDENCE)
