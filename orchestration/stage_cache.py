# orchestration/stage_cache.py
"""Per-orchestrator cache of stage results keyed by input fingerprint."""

from __future__ import annotations

import copy
import hashlib
import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import structlog

from orchestration.models import Intent, StageName, StageResult
from orchestration.token_accountant import TokenAccountant

logger = structlog.get_logger(__name__)


def fingerprint(stage: StageName, *parts: Any) -> str:
    """Stable sha256 over the stage name and its relevant inputs."""
    payload = json.dumps(
        [stage.value, *parts], sort_keys=True, default=str, ensure_ascii=False
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class StageCache:
    """Stage results keyed by ``(fingerprint, stage)``."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, StageName], StageResult] = {}

    def get(self, key: str, stage: StageName) -> StageResult | None:
        entry = self._entries.get((key, stage))
        # Callers may annotate results; hand out copies.
        return copy.deepcopy(entry) if entry is not None else None

    def put(self, key: str, stage: StageName, result: StageResult) -> None:
        if not result.ok:
            return
        self._entries[(key, stage)] = copy.deepcopy(result)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class Metrics:
    accountant: TokenAccountant = field(default_factory=TokenAccountant)
    pipeline_usage: Counter[Intent] = field(default_factory=Counter)
    cache_hits: int = 0

    @property
    def total_tokens(self) -> int:
        return self.accountant.total


@dataclass
class InstanceState:
    """Mutable state owned by exactly one orchestrator."""

    cache: StageCache = field(default_factory=StageCache)
    metrics: Metrics = field(default_factory=Metrics)
