# orchestration/pipelines.py
"""Fixed stage sequences bound to each intent."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from orchestration.models import Intent, StageName

# Stages whose results are reused for identical inputs within one orchestrator.
CACHEABLE_STAGES = frozenset(
    {StageName.ANALYZER, StageName.UX_DESIGNER, StageName.ARCHITECTURE_DESIGNER}
)


@dataclass(frozen=True)
class PipelineDefinition:
    stages: tuple[StageName, ...]
    description: str
    estimated_tokens: int

    def describe(self) -> str:
        return " -> ".join(stage.value for stage in self.stages)


PIPELINES = MappingProxyType(
    {
        Intent.CREATE_NEW: PipelineDefinition(
            (
                StageName.PLANNER,
                StageName.PLAN_REVIEWER,
                StageName.UX_DESIGNER,
                StageName.ARCHITECTURE_DESIGNER,
                StageName.GENERATOR,
                StageName.VALIDATOR,
            ),
            "Full stack creation with UX and architecture design",
            11300,
        ),
        Intent.MODIFY: PipelineDefinition(
            (StageName.ANALYZER, StageName.MODIFIER, StageName.VALIDATOR),
            "Lightweight modification of existing files",
            6100,
        ),
        Intent.DEBUG: PipelineDefinition(
            (
                StageName.ANALYZER,
                StageName.DEBUGGER,
                StageName.MODIFIER,
                StageName.VALIDATOR,
            ),
            "Bug diagnosis and fix",
            7800,
        ),
        Intent.STYLE_CHANGE: PipelineDefinition(
            (StageName.ANALYZER, StageName.UX_DESIGNER, StageName.MODIFIER),
            "UX-focused redesign",
            7200,
        ),
        Intent.EXPLAIN: PipelineDefinition(
            (StageName.ANALYZER,),
            "Code explanation only",
            2400,
        ),
    }
)

_missing = set(Intent) - set(PIPELINES)
if _missing:
    raise RuntimeError(f"No pipeline defined for intents: {sorted(i.value for i in _missing)}")


def get_pipeline(intent: Intent) -> PipelineDefinition:
    """Return the pipeline bound to ``intent``."""
    return PIPELINES[intent]
