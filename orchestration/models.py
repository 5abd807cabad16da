# orchestration/models.py
"""Shared dataclasses for orchestration services."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.errors import ErrorKind
from core.usage import TokenUsage


class Intent(str, Enum):
    """Category of change a request asks for."""

    CREATE_NEW = "CREATE_NEW"
    MODIFY = "MODIFY"
    DEBUG = "DEBUG"
    STYLE_CHANGE = "STYLE_CHANGE"
    EXPLAIN = "EXPLAIN"


class StageName(str, Enum):
    PLANNER = "planner"
    PLAN_REVIEWER = "plan-reviewer"
    UX_DESIGNER = "ux-designer"
    ARCHITECTURE_DESIGNER = "architecture-designer"
    ANALYZER = "analyzer"
    GENERATOR = "generator"
    MODIFIER = "modifier"
    DEBUGGER = "debugger"
    VALIDATOR = "validator"


class RunPhase(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    ROUTING = "routing"
    EXECUTING_STAGE = "executing_stage"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ForgeRequest:
    """A change request plus the artifacts it applies to."""

    message: str
    existing_artifacts: Mapping[str, str] = field(default_factory=dict)

    @property
    def has_existing_artifacts(self) -> bool:
        return bool(self.existing_artifacts)


@dataclass(frozen=True)
class ClassifiedIntent:
    category: Intent
    confidence: float


@dataclass
class StageResult:
    """Outcome of one stage execution."""

    stage: StageName
    ok: bool = True
    text_output: str | None = None
    structured_output: Any = None
    artifacts: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    reroute_to: Intent | None = None
    error_kind: ErrorKind | None = None
    artifact_name: str | None = None


@dataclass(frozen=True)
class ProgressEvent:
    type: str
    message: str
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "timestamp": self.timestamp}


@dataclass(frozen=True)
class ErrorDetail:
    stage: StageName | None
    artifact: str | None
    kind: ErrorKind


@dataclass
class RunResult:
    """What a caller gets back from one orchestrator run."""

    success: bool
    artifacts: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    error_detail: ErrorDetail | None = None
    explanation: str | None = None
    warnings: list[str] = field(default_factory=list)
    consistency: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)
