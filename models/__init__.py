"""Central package for FORGE data models."""

from .agent_models import (
    AgentBaseModel,
    AppIdentity,
    ArchitectureDesign,
    BugDiagnosis,
    ChangeTarget,
    CodebaseAnalysis,
    FileSpec,
    FileStructureEntry,
    FixStrategy,
    PlanReview,
    ProjectPlan,
    ReviewIssue,
    UXDesign,
)

__all__ = [
    "AgentBaseModel",
    "AppIdentity",
    "ArchitectureDesign",
    "BugDiagnosis",
    "ChangeTarget",
    "CodebaseAnalysis",
    "FileSpec",
    "FileStructureEntry",
    "FixStrategy",
    "PlanReview",
    "ProjectPlan",
    "ReviewIssue",
    "UXDesign",
]
