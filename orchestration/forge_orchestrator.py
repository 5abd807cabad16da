# orchestration/forge_orchestrator.py
"""Primary orchestrator routing FORGE requests through their stage pipelines."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, assert_never

import structlog
from agents.analyzer_agent import AnalysisMode, AnalyzerAgent
from agents.architecture_agent import (
    ArchitectureAgent,
    default_architecture,
    infer_architecture_from_code,
)
from agents.debugger_agent import DebuggerAgent
from agents.generator_agent import GeneratorAgent
from agents.modifier_agent import ModifierAgent
from agents.plan_review_agent import PlanReviewAgent
from agents.planner_agent import PlannerAgent
from agents.ux_designer_agent import UXDesignerAgent, extract_ux_from_code
from config import settings
from core.errors import ErrorKind, ForgeError, StageFailure
from core.usage import TokenUsage
from processing.artifact_validator import ValidationMode, validate_artifact
from processing.consistency_checker import check_consistency
from pydantic import ValidationError
from storage.rules_provider import RulesProvider, StaticRulesProvider
from utils.logging import bind_run_intent, run_log_context

from models import (
    AppIdentity,
    ArchitectureDesign,
    BugDiagnosis,
    CodebaseAnalysis,
    PlanReview,
    ProjectPlan,
    UXDesign,
)
from orchestration.intent_classifier import classify_intent
from orchestration.models import (
    ClassifiedIntent,
    ErrorDetail,
    ForgeRequest,
    Intent,
    ProgressEvent,
    RunPhase,
    RunResult,
    StageName,
    StageResult,
)
from orchestration.pipelines import CACHEABLE_STAGES, get_pipeline
from orchestration.stage_cache import InstanceState, fingerprint

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]

STAGE_LABELS: dict[StageName, str] = {
    StageName.PLANNER: "Planner: Creating implementation plan...",
    StageName.PLAN_REVIEWER: "Plan Reviewer: Critiquing plan...",
    StageName.UX_DESIGNER: "UX Designer: Creating design system...",
    StageName.ARCHITECTURE_DESIGNER: "Architecture Designer: Organizing file structure...",
    StageName.ANALYZER: "Analyzer: Analyzing codebase...",
    StageName.GENERATOR: "Code Generator: Generating files...",
    StageName.MODIFIER: "Code Modifier: Applying changes...",
    StageName.DEBUGGER: "Debugger: Analyzing root cause...",
    StageName.VALIDATOR: "Validator: Checking artifacts...",
}

ANALYSIS_MODES: dict[Intent, AnalysisMode] = {
    Intent.MODIFY: AnalysisMode.MODIFICATION,
    Intent.DEBUG: AnalysisMode.DEBUG,
    Intent.STYLE_CHANGE: AnalysisMode.STYLE_EXTRACTION,
    Intent.EXPLAIN: AnalysisMode.EXPLAIN,
}

STYLE_INSTRUCTION = "Apply new UX design"


class _Reroute(Exception):
    def __init__(self, intent: Intent) -> None:
        super().__init__(intent.value)
        self.intent = intent


@dataclass
class _RunContext:
    """Everything one run accumulates while its stages execute."""

    request: ForgeRequest
    intent: ClassifiedIntent
    pipeline_intent: Intent
    guidance: str
    on_progress: ProgressCallback | None = None
    artifacts: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    stages_run: list[str] = field(default_factory=list)
    plan: ProjectPlan | None = None
    review: PlanReview | None = None
    ux_design: UXDesign | None = None
    architecture: ArchitectureDesign | None = None
    analysis: CodebaseAnalysis | None = None
    diagnosis: BugDiagnosis | None = None
    explanation: str | None = None


class ForgeOrchestrator:
    """Runs the fixed pipeline bound to each classified request.

    Cache and metrics belong to the instance; a second ``run`` while one is
    in progress raises ``RuntimeError``.
    """

    def __init__(
        self,
        rules_provider: RulesProvider | None = None,
        *,
        planner: PlannerAgent | None = None,
        plan_reviewer: PlanReviewAgent | None = None,
        ux_designer: UXDesignerAgent | None = None,
        architect: ArchitectureAgent | None = None,
        analyzer: AnalyzerAgent | None = None,
        generator: GeneratorAgent | None = None,
        modifier: ModifierAgent | None = None,
        debugger: DebuggerAgent | None = None,
    ):
        logger.info("Initializing FORGE Orchestrator...")
        self.rules_provider = rules_provider or StaticRulesProvider()
        self.planner = planner or PlannerAgent()
        self.plan_reviewer = plan_reviewer or PlanReviewAgent()
        self.ux_designer = ux_designer or UXDesignerAgent()
        self.architect = architect or ArchitectureAgent()
        self.analyzer = analyzer or AnalyzerAgent()
        self.generator = generator or GeneratorAgent()
        self.modifier = modifier or ModifierAgent()
        self.debugger = debugger or DebuggerAgent()
        self.state = InstanceState()
        self.phase = RunPhase.IDLE
        self._running = False
        logger.info("FORGE Orchestrator initialized.")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        message: str,
        existing_artifacts: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RunResult:
        """Classify ``message``, execute its pipeline and report the outcome."""
        if self._running:
            raise RuntimeError("ForgeOrchestrator is already running a request")
        self._running = True
        try:
            with run_log_context() as run_id:
                result = await self._run(
                    ForgeRequest(message, dict(existing_artifacts or {})), on_progress
                )
            result.metadata["run_id"] = run_id
            return result
        except Exception:
            self.phase = RunPhase.FAILED
            raise
        finally:
            self._running = False

    def get_metrics(self) -> dict[str, Any]:
        metrics = self.state.metrics
        return {
            "total_tokens": metrics.total_tokens,
            "reasoning_tokens": metrics.accountant.reasoning_total,
            "stage_tokens": dict(metrics.accountant.stage_totals),
            "pipeline_usage": {i.value: n for i, n in metrics.pipeline_usage.items()},
            "cache_hits": metrics.cache_hits,
            "cache_size": len(self.state.cache),
        }

    def clear_cache(self) -> None:
        self.state.cache.clear()
        self.state.metrics.cache_hits = 0
        logger.info("FORGE stage cache cleared.")

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def _run(
        self, request: ForgeRequest, on_progress: ProgressCallback | None
    ) -> RunResult:
        metrics = self.state.metrics
        tokens_before = metrics.total_tokens
        cache_hits_before = metrics.cache_hits

        self.phase = RunPhase.CLASSIFYING
        intent = classify_intent(request.message, request.has_existing_artifacts)
        bind_run_intent(intent.category.value)
        ctx = _RunContext(
            request=request,
            intent=intent,
            pipeline_intent=intent.category,
            guidance=self.rules_provider.get_guidance(request),
            on_progress=on_progress,
        )
        self._emit(
            ctx,
            "intent",
            f"Intent: {intent.category.value} ({intent.confidence:.0%} confidence)",
        )

        rerouted_to: Intent | None = None
        estimated = 0
        failure: tuple[str, ErrorDetail] | None = None
        while True:
            self.phase = RunPhase.ROUTING
            pipeline = get_pipeline(ctx.pipeline_intent)
            metrics.pipeline_usage[ctx.pipeline_intent] += 1
            estimated += pipeline.estimated_tokens
            self._emit(
                ctx, "pipeline", f"{pipeline.description}: {pipeline.describe()}"
            )
            try:
                failure = await self._execute_pipeline(ctx, pipeline.stages)
            except _Reroute as reroute:
                rerouted_to = ctx.pipeline_intent = reroute.intent
                self._emit(
                    ctx,
                    "agent",
                    f"No modifications needed, routing to {reroute.intent.value}...",
                )
                continue
            break

        result = RunResult(
            success=failure is None,
            artifacts=dict(ctx.artifacts),
            explanation=ctx.explanation,
            warnings=ctx.warnings,
            metadata={
                "intent": intent.category.value,
                "confidence": intent.confidence,
                "stages": ctx.stages_run,
                "estimated_tokens": estimated,
                "actual_tokens": metrics.total_tokens - tokens_before,
                "cache_hits": metrics.cache_hits - cache_hits_before,
                "rerouted_to": rerouted_to.value if rerouted_to else None,
            },
        )
        if failure is not None:
            result.error, result.error_detail = failure
            self.phase = RunPhase.FAILED
            self._emit(ctx, "error", result.error)
            logger.error(
                f"FORGE run failed at stage '{result.error_detail.stage}': {result.error}",
                kind=result.error_detail.kind.value,
                artifact=result.error_detail.artifact,
            )
            return result

        if len(ctx.artifacts) > 1:
            report = check_consistency(
                {**request.existing_artifacts, **ctx.artifacts},
                settings.ENTRY_ARTIFACT_NAME,
            )
            result.consistency = report
            result.warnings.extend(report.messages())

        self.phase = RunPhase.COMPLETED
        self._emit(
            ctx,
            "complete",
            f"Done: {len(ctx.artifacts)} artifact(s), "
            f"{result.metadata['actual_tokens']} tokens",
        )
        logger.info(
            f"FORGE run completed: {intent.category.value}"
            f"{f' -> {rerouted_to.value}' if rerouted_to else ''}, "
            f"{len(ctx.artifacts)} artifacts, {result.metadata['actual_tokens']} tokens."
        )
        return result

    async def _execute_pipeline(
        self, ctx: _RunContext, stages: tuple[StageName, ...]
    ) -> tuple[str, ErrorDetail] | None:
        """Run ``stages`` in order; return the failure, if any."""
        for stage in stages:
            self.phase = RunPhase.EXECUTING_STAGE
            ctx.stages_run.append(stage.value)
            self._emit(ctx, "agent", STAGE_LABELS[stage])

            result = await self._execute_stage(ctx, stage)
            self.state.metrics.accountant.record_usage(stage, result.usage)
            ctx.warnings.extend(result.warnings)

            if not result.ok:
                message = "; ".join(result.errors) or f"Stage '{stage.value}' failed"
                kind = result.error_kind or ErrorKind.STAGE_FAILURE
                return message, ErrorDetail(stage, result.artifact_name, kind)
            if result.reroute_to is not None:
                raise _Reroute(result.reroute_to)
        return None

    async def _execute_stage(self, ctx: _RunContext, stage: StageName) -> StageResult:
        key = None
        if stage in CACHEABLE_STAGES:
            key = fingerprint(stage, *self._cache_inputs(ctx, stage))
            cached = self.state.cache.get(key, stage)
            if cached is not None:
                self.state.metrics.cache_hits += 1
                self._emit(ctx, "cache", f"Using cached {stage.value} result")
                self._restore(ctx, cached)
                cached.usage = TokenUsage()
                return cached

        result = StageResult(stage=stage)
        try:
            await self._dispatch(ctx, stage, result)
        except ForgeError as exc:
            self._fail(result, str(exc), exc.kind)
            if isinstance(exc, StageFailure) and exc.artifact_name:
                result.artifact_name = exc.artifact_name
        except ValidationError as exc:
            self._fail(
                result,
                f"Stage output did not match the expected structure: {exc.error_count()} error(s)",
                ErrorKind.STRUCTURED_PARSE_FAILURE,
            )
        except Exception as exc:
            logger.exception(f"Unexpected error in stage '{stage.value}'")
            self._fail(result, f"Internal error: {exc}", ErrorKind.INTERNAL)

        if key is not None and result.ok and not result.warnings:
            self.state.cache.put(key, stage, result)
        return result

    @staticmethod
    def _fail(result: StageResult, message: str, kind: ErrorKind) -> None:
        result.ok = False
        result.errors.append(message)
        result.error_kind = kind

    async def _dispatch(
        self, ctx: _RunContext, stage: StageName, result: StageResult
    ) -> None:
        match stage:
            case StageName.PLANNER:
                await self._run_planner(ctx, result)
            case StageName.PLAN_REVIEWER:
                await self._run_plan_reviewer(ctx, result)
            case StageName.UX_DESIGNER:
                await self._run_ux_designer(ctx, result)
            case StageName.ARCHITECTURE_DESIGNER:
                await self._run_architecture_designer(ctx, result)
            case StageName.ANALYZER:
                await self._run_analyzer(ctx, result)
            case StageName.GENERATOR:
                await self._run_generator(ctx, result)
            case StageName.MODIFIER:
                await self._run_modifier(ctx, result)
            case StageName.DEBUGGER:
                await self._run_debugger(ctx, result)
            case StageName.VALIDATOR:
                self._run_validator(ctx, result)
            case _:
                assert_never(stage)

    # ------------------------------------------------------------------
    # Cache plumbing
    # ------------------------------------------------------------------

    def _cache_inputs(self, ctx: _RunContext, stage: StageName) -> tuple[Any, ...]:
        if stage is StageName.ANALYZER:
            return (
                ANALYSIS_MODES[ctx.pipeline_intent].value,
                ctx.request.message,
                sorted(ctx.request.existing_artifacts.items()),
            )
        if stage is StageName.UX_DESIGNER:
            mode, identity, current_styles = self._design_inputs(ctx)
            return (
                mode,
                ctx.request.message,
                identity.to_prompt_dict() if identity else None,
                current_styles,
            )
        plan_files = ctx.plan.planned_files() if ctx.plan else []
        return ("create_new", plan_files)

    def _restore(self, ctx: _RunContext, result: StageResult) -> None:
        """Put a cached stage's payload back into the run context."""
        if result.stage is StageName.ANALYZER:
            self._absorb_analysis(ctx, result.structured_output)
        elif result.stage is StageName.UX_DESIGNER:
            ctx.ux_design = result.structured_output
        elif result.stage is StageName.ARCHITECTURE_DESIGNER:
            ctx.architecture = result.structured_output

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------

    async def _run_planner(self, ctx: _RunContext, result: StageResult) -> None:
        plan, usage = await self.planner.plan(
            ctx.request, ctx.pipeline_intent, guidance=ctx.guidance
        )
        result.usage.add(usage)
        ctx.plan = result.structured_output = plan
        self._emit(ctx, "agent", f"Plan: {len(plan.planned_files())} files to create")

    async def _run_plan_reviewer(self, ctx: _RunContext, result: StageResult) -> None:
        plan = self._require(ctx.plan, "plan")
        try:
            review, usage = await self.plan_reviewer.review(ctx.request.message, plan)
        except (ForgeError, ValidationError) as exc:
            logger.warning(f"Plan review skipped: {exc}")
            result.warnings.append(f"Plan review skipped: {exc}")
            return
        result.usage.add(usage)
        ctx.review = result.structured_output = review
        self._emit(
            ctx, "agent", f"Plan review: {review.quality_score}/100"
            f"{'' if review.approved else ', revising plan'}"
        )

        instructions = review.improvement_instructions()
        if instructions is None:
            return
        if review.revised_plan is not None and review.revised_plan.planned_files():
            ctx.plan = review.revised_plan
            logger.info("Using the reviewer's revised plan.")
            return
        try:
            revised, usage = await self.planner.plan(
                ctx.request,
                ctx.pipeline_intent,
                guidance=ctx.guidance,
                feedback=instructions,
                previous_plan=plan,
            )
        except (ForgeError, ValidationError) as exc:
            logger.warning(f"Plan revision failed, keeping the original plan: {exc}")
            result.warnings.append(f"Plan revision failed: {exc}")
            return
        result.usage.add(usage)
        ctx.plan = revised

    def _design_inputs(
        self, ctx: _RunContext
    ) -> tuple[str, AppIdentity | None, dict[str, Any] | None]:
        if ctx.pipeline_intent is Intent.STYLE_CHANGE:
            current_styles = (
                ctx.analysis.current_styles if ctx.analysis else None
            ) or extract_ux_from_code(ctx.request.existing_artifacts)
            identity = current_styles.get("appIdentity")
            return (
                "redesign",
                AppIdentity.model_validate(identity) if identity else None,
                current_styles,
            )
        return "create_new", ctx.plan.app_identity if ctx.plan else None, None

    async def _run_ux_designer(self, ctx: _RunContext, result: StageResult) -> None:
        mode, identity, current_styles = self._design_inputs(ctx)
        try:
            design, usage = await self.ux_designer.design(
                ctx.request.message,
                app_identity=identity,
                mode=mode,
                current_styles=current_styles,
                guidance=ctx.guidance,
            )
            result.usage.add(usage)
        except (ForgeError, ValidationError) as exc:
            logger.warning(f"UX design failed, using default design: {exc}")
            result.warnings.append(f"UX design unavailable, default design used: {exc}")
            design = self.ux_designer.default_design(mode, identity)
        ctx.ux_design = result.structured_output = design

    async def _run_architecture_designer(
        self, ctx: _RunContext, result: StageResult
    ) -> None:
        plan = self._require(ctx.plan, "plan")
        try:
            architecture, usage = await self.architect.design(plan)
            result.usage.add(usage)
        except (ForgeError, ValidationError) as exc:
            logger.warning(f"Architecture design failed, using default layout: {exc}")
            result.warnings.append(
                f"Architecture design unavailable, default layout used: {exc}"
            )
            architecture = default_architecture(plan.planned_files())
        ctx.architecture = result.structured_output = architecture

    async def _run_analyzer(self, ctx: _RunContext, result: StageResult) -> None:
        mode = ANALYSIS_MODES[ctx.pipeline_intent]
        analysis, usage = await self.analyzer.analyze(
            ctx.request.message,
            ctx.request.existing_artifacts,
            mode,
            guidance=ctx.guidance,
        )
        result.usage.add(usage)

        if mode is AnalysisMode.STYLE_EXTRACTION and not analysis.styled_files:
            styled = [
                name
                for name, text in ctx.request.existing_artifacts.items()
                if "className=" in text
            ]
            if styled:
                result.warnings.append(
                    f"Analyzer listed no styled files; restyling {len(styled)} files using className."
                )
                analysis = analysis.model_copy(update={"styled_files": styled})

        result.structured_output = analysis
        self._absorb_analysis(ctx, analysis)
        if mode is AnalysisMode.MODIFICATION and (
            not analysis.needs_analysis or not analysis.files_to_modify
        ):
            result.reroute_to = Intent.CREATE_NEW
        elif mode is AnalysisMode.DEBUG and not analysis.error_file:
            self._fail(result, "Could not identify error location", ErrorKind.STAGE_FAILURE)

    def _absorb_analysis(self, ctx: _RunContext, analysis: CodebaseAnalysis) -> None:
        ctx.analysis = analysis
        if ctx.pipeline_intent is Intent.EXPLAIN:
            ctx.explanation = analysis.explanation or analysis.reasoning

    async def _run_generator(self, ctx: _RunContext, result: StageResult) -> None:
        plan = self._require(ctx.plan, "plan")
        ux_design = ctx.ux_design or self.ux_designer.default_design()
        architecture = ctx.architecture or default_architecture(plan.planned_files())
        generated: dict[str, str] = {}
        for name in plan.planned_files():
            result.artifact_name = name
            self._emit(ctx, "file", f"Generating {name}...")
            code, usage = await self.generator.generate(
                name,
                ctx.request.message,
                plan,
                ux_design,
                architecture,
                generated=generated,
                guidance=ctx.guidance,
            )
            result.usage.add(usage)
            generated[name] = ctx.artifacts[name] = self._fast_validate(ctx, name, code)
        result.artifacts = generated

    async def _run_modifier(self, ctx: _RunContext, result: StageResult) -> None:
        analysis = self._require(ctx.analysis, "analysis")
        existing = ctx.request.existing_artifacts
        architecture = ctx.architecture or infer_architecture_from_code(existing)

        jobs: list[tuple[str, dict[str, Any]]]
        match ctx.pipeline_intent:
            case Intent.DEBUG:
                diagnosis = self._require(ctx.diagnosis, "diagnosis")
                jobs = [
                    (
                        self._require(analysis.error_file, "error location"),
                        {
                            "instruction": f"Fix: {diagnosis.root_cause}",
                            "fix_strategy": diagnosis.fix_strategy,
                        },
                    )
                ]
            case Intent.STYLE_CHANGE:
                ux_design = ctx.ux_design or self.ux_designer.default_design("redesign")
                jobs = [
                    (name, {"instruction": STYLE_INSTRUCTION, "ux_design": ux_design})
                    for name in analysis.styled_files
                ]
                if not jobs:
                    result.warnings.append("No styled files found to update.")
            case _:
                jobs = [
                    (
                        name,
                        {
                            "instruction": ctx.request.message,
                            "change_targets": analysis.change_targets.get(name, []),
                        },
                    )
                    for name in analysis.files_to_modify
                ]

        for name, options in jobs:
            result.artifact_name = name
            self._emit(ctx, "file", f"Modifying {name}...")
            code, usage = await self.modifier.modify(
                name,
                existing.get(name, ""),
                architecture=architecture,
                guidance=ctx.guidance,
                **options,
            )
            result.usage.add(usage)
            result.artifacts[name] = ctx.artifacts[name] = self._fast_validate(
                ctx, name, code
            )

    async def _run_debugger(self, ctx: _RunContext, result: StageResult) -> None:
        analysis = self._require(ctx.analysis, "analysis")
        error_file = self._require(analysis.error_file, "error location")
        result.artifact_name = error_file
        diagnosis, usage = await self.debugger.diagnose(
            ctx.request.message,
            analysis,
            ctx.request.existing_artifacts.get(error_file, ""),
            guidance=ctx.guidance,
        )
        result.usage.add(usage)
        ctx.diagnosis = result.structured_output = diagnosis
        self._emit(ctx, "agent", f"Root cause: {diagnosis.root_cause[:120]}")

    def _run_validator(self, ctx: _RunContext, result: StageResult) -> None:
        failed: list[tuple[str, list[str]]] = []
        for name, text in list(ctx.artifacts.items()):
            report = validate_artifact(text, name, ValidationMode.FULL)
            if report.auto_fixed:
                self._emit(ctx, "validation", f"Auto-fixing {name}...")
                ctx.artifacts[name] = report.text
            result.warnings.extend(
                f"{name}: {issue.message}"
                for issue in report.remaining
                if not issue.is_critical
            )
            if not report.valid:
                failed.append((name, [i.message for i in report.remaining_critical]))

        if failed:
            result.artifact_name = failed[0][0]
            for name, messages in failed:
                result.errors.append(f"{name}: {'; '.join(messages)}")
            result.ok = False
            result.error_kind = ErrorKind.VALIDATION_CRITICAL

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fast_validate(self, ctx: _RunContext, name: str, code: str) -> str:
        report = validate_artifact(code, name, ValidationMode.FAST)
        if report.auto_fixed:
            self._emit(ctx, "validation", f"Auto-fixing {name}...")
        return report.text

    @staticmethod
    def _require(value: Any, what: str) -> Any:
        if value is None:
            raise StageFailure(f"Missing {what} from an earlier stage")
        return value

    def _emit(self, ctx: _RunContext, event_type: str, message: str) -> None:
        if ctx.on_progress is None:
            return
        try:
            ctx.on_progress(ProgressEvent(event_type, message))
        except Exception as exc:
            logger.warning(f"Progress callback raised {type(exc).__name__}: {exc}")
