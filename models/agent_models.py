# models/agent_models.py
"""Pydantic structures exchanged between FORGE stage agents.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON shapes the prompts ask the model to emit.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from config import settings


class AgentBaseModel(BaseModel):
    """Base model supporting mapping style access."""

    model_config = ConfigDict(
        from_attributes=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def __getitem__(self, item: str) -> Any:  # pragma: no cover - convenience
        return getattr(self, item)

    def get(
        self, item: str, default: Any = None
    ) -> Any:  # pragma: no cover - convenience
        return getattr(self, item, default)

    def to_prompt_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AppIdentity(AgentBaseModel):
    name: str = "Modern App"
    tagline: str = "A beautiful experience"
    tone: str = "professional"


class FileSpec(AgentBaseModel):
    """What the planner expects a single file to contain."""

    purpose: str = "Component file"
    required_imports: Any = None
    required_state: Any = None
    required_functions: Any = None
    initial_data: Any = None
    data_structure: Any = None
    key_features: Any = None
    styling: Any = None
    exports: Any = None


class ProjectPlan(AgentBaseModel):
    steps: list[str] = Field(default_factory=list)
    files_to_create: list[str] = Field(default_factory=list)
    files_to_modify: list[str] = Field(default_factory=list)
    npm_packages: list[str] = Field(default_factory=list)
    already_exists: bool = False
    summary: str = ""
    file_details: dict[str, FileSpec] = Field(default_factory=dict)
    app_identity: AppIdentity | None = None

    def planned_files(self) -> list[str]:
        """Files to generate, in the order the planner listed them."""
        return list(self.files_to_create or self.file_details)


class ReviewIssue(AgentBaseModel):
    severity: str = "medium"
    category: str = ""
    description: str = ""
    suggestion: str = ""


class PlanReview(AgentBaseModel):
    quality_score: int = 70
    approved: bool | None = None
    needs_revision: bool | None = None
    issues: list[ReviewIssue] = Field(default_factory=list)
    color_creativity_score: int = 70
    ux_completeness_score: int = 70
    branding_quality_score: int = 70
    strengths: list[str] = Field(default_factory=list)
    overall_feedback: str = "Review completed"
    revised_plan: ProjectPlan | None = None

    @model_validator(mode="after")
    def fill_verdict(self) -> PlanReview:
        has_critical = any(i.severity == "critical" for i in self.issues)
        passes = (
            self.quality_score >= settings.PLAN_APPROVAL_SCORE
            and self.color_creativity_score >= 70
            and not has_critical
        )
        if self.approved is None:
            self.approved = passes
        if self.needs_revision is None:
            self.needs_revision = not passes
        return self

    def improvement_instructions(self) -> str | None:
        """Feedback for the planner, or ``None`` when no revision is needed."""
        if self.approved and not self.needs_revision:
            return None

        lines = ["Please improve the plan based on this review feedback:", ""]
        urgent = [i for i in self.issues if i.severity in ("critical", "high")]
        if urgent:
            lines.append("Critical issues to fix:")
            for issue in urgent:
                lines.append(f"- {issue.description}")
                if issue.suggestion:
                    lines.append(f"  Suggestion: {issue.suggestion}")
            lines.append("")
        if self.color_creativity_score < 70:
            lines.append(
                f"Color creativity is too low ({self.color_creativity_score}/100): "
                "choose 3+ distinct colors and avoid monochrome or generic palettes."
            )
        if self.ux_completeness_score < 75:
            lines.append(
                f"UX completeness is low ({self.ux_completeness_score}/100): add "
                "feedback messages, empty states and micro-interactions."
            )
        if self.branding_quality_score < 75:
            lines.append(
                f"Branding is weak ({self.branding_quality_score}/100): make the "
                "app name and tagline more specific."
            )
        others = [i for i in self.issues if i.severity not in ("critical", "high")]
        for issue in others:
            suffix = f" ({issue.suggestion})" if issue.suggestion else ""
            lines.append(f"- {issue.description}{suffix}")
        lines.append(f"Overall feedback: {self.overall_feedback}")
        lines.append(f"Current quality score: {self.quality_score}/100")
        return "\n".join(lines)


class TextColors(AgentBaseModel):
    primary: str = "text-gray-100"
    secondary: str = "text-gray-300"
    muted: str = "text-gray-400"


class ColorScheme(AgentBaseModel):
    theme: str = "dark"
    background: str = "bg-gradient-to-br from-slate-900 via-purple-900 to-slate-900"
    primary: str = "cyan-400"
    secondary: str = "purple-500"
    accent: str = "indigo-500"
    text: TextColors = Field(default_factory=TextColors)
    surface: str = "bg-slate-800/40"
    border: str = "border-slate-700/50"


class DesignStyle(AgentBaseModel):
    aesthetic: str = "glassmorphism"
    corners: str = "rounded-2xl"
    shadows: str = "heavy"
    effects: str = "backdrop-blur-xl, shadow glows"
    style_rationale: str = "Modern, polished, professional"


class UXPatterns(AgentBaseModel):
    user_feedback: str = "Toast notifications for actions"
    information_architecture: str = "Sections with count badges"
    empty_states: str = "Helpful messages with call-to-action"
    micro_interactions: str = "Smooth transitions, hover effects"
    visual_indicators: str = "Count badges, status icons"


class LayoutStructure(AgentBaseModel):
    container_style: str = "bg-slate-800/40 backdrop-blur-xl border border-slate-700/50"
    spacing: str = "gap-6 sections, gap-3 items"
    typography: str = "text-5xl bold headings, text-base body"
    responsive: str = "Mobile-first with md/lg breakpoints"


class UXDesign(AgentBaseModel):
    """Design system every generated component is asked to follow."""

    app_identity: AppIdentity = Field(default_factory=AppIdentity)
    color_scheme: ColorScheme = Field(default_factory=ColorScheme)
    design_style: DesignStyle = Field(default_factory=DesignStyle)
    ux_patterns: UXPatterns = Field(default_factory=UXPatterns)
    layout_structure: LayoutStructure = Field(default_factory=LayoutStructure)
    mode: str = "create_new"
    is_fallback: bool = False


class FileStructureEntry(AgentBaseModel):
    folder: str = "root"
    purpose: str = ""
    imports: list[str] = Field(default_factory=list)


class ArchitectureDesign(AgentBaseModel):
    file_structure: dict[str, FileStructureEntry] = Field(default_factory=dict)
    import_paths: dict[str, str] = Field(default_factory=dict)
    folder_purposes: dict[str, str] = Field(default_factory=dict)
    dependencies: dict[str, list[str]] = Field(default_factory=dict)
    mode: str = "create_new"
    is_fallback: bool = False


class ChangeTarget(AgentBaseModel):
    pattern: str
    replacement: str = ""
    reason: str = ""


class CodebaseAnalysis(AgentBaseModel):
    """Analyzer output; which fields are filled depends on the analysis mode."""

    needs_analysis: bool = True
    files_to_modify: list[str] = Field(default_factory=list)
    change_targets: dict[str, list[ChangeTarget]] = Field(default_factory=dict)
    reasoning: str = ""
    # debug mode
    error_file: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    stack_trace: str | None = None
    # style extraction mode
    current_styles: dict[str, Any] | None = None
    styled_files: list[str] = Field(default_factory=list)
    # explain mode
    explanation: str | None = None
    relevant_files: list[str] = Field(default_factory=list)
    key_features: list[str] = Field(default_factory=list)
    architecture: Any = None


class AffectedCode(AgentBaseModel):
    location: str = "unknown"
    problematic_pattern: str = ""
    why_it_fails: str = ""


class FixStrategy(AgentBaseModel):
    approach: str = ""
    minimal_changes: str = ""
    code_example: str = ""


class BugDiagnosis(AgentBaseModel):
    error_type: str = "unknown"
    root_cause: str = ""
    explanation: str = ""
    affected_code: AffectedCode = Field(default_factory=AffectedCode)
    fix_strategy: FixStrategy = Field(default_factory=FixStrategy)
    related_issues: list[str] = Field(default_factory=list)
    prevention_tip: str = ""
