import asyncio

import pytest
import structlog
from agents.analyzer_agent import AnalysisMode, AnalyzerAgent
from agents.architecture_agent import ArchitectureAgent
from agents.debugger_agent import DebuggerAgent
from agents.generator_agent import GeneratorAgent
from agents.modifier_agent import ModifierAgent
from agents.plan_review_agent import PlanReviewAgent
from agents.planner_agent import PlannerAgent
from agents.ux_designer_agent import UXDesignerAgent
from core.errors import CompletionServiceError, ErrorKind, StructuredParseError
from core.usage import TokenUsage
from orchestration.forge_orchestrator import STYLE_INSTRUCTION, ForgeOrchestrator

from models import (
    ArchitectureDesign,
    BugDiagnosis,
    ChangeTarget,
    CodebaseAnalysis,
    FixStrategy,
    PlanReview,
    ProjectPlan,
    UXDesign,
)
from orchestration.models import Intent, RunPhase, StageName


def _usage():
    return TokenUsage(prompt_tokens=6, completion_tokens=4, total_tokens=10)


APP_CODE = """import Counter from "./components/Counter";

export default function App() {
  return <Counter />;
}
"""

COUNTER_CODE = """export default function Counter() {
  return <button className="p-2 bg-slate-800">+</button>;
}
"""

EXISTING = {
    "App.jsx": """export default function App() {
  return <h1 className="text-cyan-400">Todos</h1>;
}
"""
}


class FakePlanner(PlannerAgent):
    def __init__(self, files=("App.jsx", "components/Counter.jsx"), error=None):
        super().__init__("fake")
        self.files = list(files)
        self.error = error
        self.calls = []
        self.gate = None

    async def plan(
        self,
        request,
        intent=Intent.CREATE_NEW,
        guidance="",
        feedback=None,
        previous_plan=None,
    ):
        self.calls.append({"intent": intent, "feedback": feedback, "guidance": guidance})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return ProjectPlan(files_to_create=list(self.files), summary="counter"), _usage()


class FakeReviewer(PlanReviewAgent):
    def __init__(self, review=None):
        super().__init__("fake")
        self.result = review or PlanReview(
            quality_score=90,
            color_creativity_score=90,
            ux_completeness_score=90,
            branding_quality_score=90,
        )

    async def review(self, message, plan):
        return self.result, _usage()


class FakeUX(UXDesignerAgent):
    def __init__(self, error=None):
        super().__init__("fake")
        self.error = error
        self.calls = []

    async def design(
        self, message, app_identity=None, mode="create_new", current_styles=None, guidance=""
    ):
        self.calls.append({"mode": mode, "current_styles": current_styles})
        if self.error is not None:
            raise self.error
        return UXDesign(mode=mode), _usage()


class FakeArchitect(ArchitectureAgent):
    def __init__(self):
        super().__init__("fake")
        self.calls = 0

    async def design(self, plan):
        self.calls += 1
        return ArchitectureDesign(), _usage()


class FakeAnalyzer(AnalyzerAgent):
    def __init__(self, analysis=None):
        super().__init__("fake")
        self.analysis = analysis or CodebaseAnalysis()
        self.modes = []

    async def analyze(self, message, artifacts, mode=AnalysisMode.MODIFICATION, guidance=""):
        self.modes.append(mode)
        return self.analysis, _usage()


class FakeGenerator(GeneratorAgent):
    def __init__(self, outputs=None):
        super().__init__("fake")
        self.outputs = outputs or {"App.jsx": APP_CODE, "components/Counter.jsx": COUNTER_CODE}
        self.calls = []

    async def generate(
        self, artifact_name, message, plan, ux_design, architecture, generated=None, guidance=""
    ):
        self.calls.append((artifact_name, sorted(generated or {})))
        return self.outputs[artifact_name], _usage()


class FakeModifier(ModifierAgent):
    def __init__(self, output=None):
        super().__init__("fake")
        self.output = output
        self.calls = []

    async def modify(
        self,
        artifact_name,
        current_text,
        instruction,
        change_targets=None,
        fix_strategy=None,
        ux_design=None,
        architecture=None,
        guidance="",
    ):
        self.calls.append(
            {
                "name": artifact_name,
                "instruction": instruction,
                "change_targets": change_targets,
                "fix_strategy": fix_strategy,
                "ux_design": ux_design,
                "architecture": architecture,
            }
        )
        if self.output is not None:
            return self.output, _usage()
        return current_text.replace("Todos", "Tasks"), _usage()


class FakeDebugger(DebuggerAgent):
    def __init__(self):
        super().__init__("fake")
        self.calls = 0

    async def diagnose(self, message, analysis, code, guidance=""):
        self.calls += 1
        return (
            BugDiagnosis(
                error_type="TypeError",
                root_cause="items is undefined on first render",
                fix_strategy=FixStrategy(approach="Default items to []"),
            ),
            _usage(),
        )


def _orchestrator(**overrides):
    agents = {
        "planner": FakePlanner(),
        "plan_reviewer": FakeReviewer(),
        "ux_designer": FakeUX(),
        "architect": FakeArchitect(),
        "analyzer": FakeAnalyzer(),
        "generator": FakeGenerator(),
        "modifier": FakeModifier(),
        "debugger": FakeDebugger(),
    }
    agents.update(overrides)
    return ForgeOrchestrator(**agents), agents


@pytest.mark.asyncio
async def test_create_new_runs_full_pipeline():
    orchestrator, agents = _orchestrator()
    events = []

    result = await orchestrator.run("create a counter app", on_progress=events.append)

    assert result.success
    assert result.error is None
    assert result.artifacts == {"App.jsx": APP_CODE, "components/Counter.jsx": COUNTER_CODE}
    assert result.metadata["intent"] == "CREATE_NEW"
    assert result.metadata["confidence"] == 0.95
    assert result.metadata["stages"] == [
        "planner",
        "plan-reviewer",
        "ux-designer",
        "architecture-designer",
        "generator",
        "validator",
    ]
    assert result.metadata["estimated_tokens"] == 11300
    assert result.metadata["actual_tokens"] == 60
    assert result.metadata["rerouted_to"] is None
    assert len(result.metadata["run_id"]) == 8
    assert "run_id" not in structlog.contextvars.get_contextvars()
    assert result.consistency is not None and result.consistency.valid
    assert orchestrator.phase is RunPhase.COMPLETED

    # the entry file is generated with nothing before it; the second sees it
    assert agents["generator"].calls == [
        ("App.jsx", []),
        ("components/Counter.jsx", ["App.jsx"]),
    ]
    assert "browser sandbox" in agents["planner"].calls[0]["guidance"]

    types = [event.type for event in events]
    assert types[0] == "intent"
    assert types[-1] == "complete"
    assert types.count("file") == 2
    assert "Planner: Creating implementation plan..." in [e.message for e in events]


@pytest.mark.asyncio
async def test_plan_review_feedback_triggers_one_revision():
    review = PlanReview(quality_score=50, color_creativity_score=40)
    planner = FakePlanner()
    orchestrator, _ = _orchestrator(planner=planner, plan_reviewer=FakeReviewer(review))

    result = await orchestrator.run("create a counter app")

    assert result.success
    assert len(planner.calls) == 2
    assert planner.calls[1]["feedback"].startswith("Please improve the plan")


@pytest.mark.asyncio
async def test_design_stage_failures_fall_back_with_warning():
    ux = FakeUX(error=StructuredParseError("bad design"))
    orchestrator, agents = _orchestrator(ux_designer=ux)

    result = await orchestrator.run("create a counter app")

    assert result.success
    assert any("default design used" in w for w in result.warnings)
    # fallback results are not cached
    assert orchestrator.get_metrics()["cache_size"] == 1


@pytest.mark.asyncio
async def test_planner_failure_is_reported_with_kind():
    planner = FakePlanner(error=CompletionServiceError("API error: boom"))
    orchestrator, _ = _orchestrator(planner=planner)
    events = []

    result = await orchestrator.run("create a counter app", on_progress=events.append)

    assert not result.success
    assert result.error == "API error: boom"
    assert result.error_detail.stage is StageName.PLANNER
    assert result.error_detail.kind is ErrorKind.NETWORK_FATAL
    assert result.metadata["stages"] == ["planner"]
    assert orchestrator.phase is RunPhase.FAILED
    assert events[-1].type == "error"


@pytest.mark.asyncio
async def test_repeated_run_reuses_cached_design_stages():
    orchestrator, agents = _orchestrator()

    first = await orchestrator.run("create a counter app")
    second = await orchestrator.run("create a counter app")

    assert first.metadata["cache_hits"] == 0
    assert second.metadata["cache_hits"] == 2
    assert second.metadata["actual_tokens"] == 40
    assert len(agents["ux_designer"].calls) == 1
    assert agents["architect"].calls == 1

    metrics = orchestrator.get_metrics()
    assert metrics["cache_hits"] == 2
    assert metrics["cache_size"] == 2
    assert metrics["total_tokens"] == 100
    assert metrics["pipeline_usage"] == {"CREATE_NEW": 2}
    assert metrics["stage_tokens"]["ux-designer"] == 10

    orchestrator.clear_cache()
    metrics = orchestrator.get_metrics()
    assert metrics["cache_size"] == 0
    assert metrics["cache_hits"] == 0


@pytest.mark.asyncio
async def test_modify_updates_targeted_files():
    analysis = CodebaseAnalysis(
        files_to_modify=["App.jsx"],
        change_targets={"App.jsx": [ChangeTarget(pattern="Todos", replacement="Tasks")]},
    )
    orchestrator, agents = _orchestrator(analyzer=FakeAnalyzer(analysis))

    result = await orchestrator.run("update the title", EXISTING)

    assert result.success
    assert result.metadata["intent"] == "MODIFY"
    assert result.metadata["stages"] == ["analyzer", "modifier", "validator"]
    assert "Tasks" in result.artifacts["App.jsx"]
    call = agents["modifier"].calls[0]
    assert call["instruction"] == "update the title"
    assert call["change_targets"][0].replacement == "Tasks"
    assert agents["analyzer"].modes == [AnalysisMode.MODIFICATION]
    assert call["architecture"].mode == "inferred"
    assert agents["architect"].calls == 0


@pytest.mark.asyncio
async def test_modify_without_targets_reroutes_to_create_new():
    orchestrator, agents = _orchestrator(
        analyzer=FakeAnalyzer(CodebaseAnalysis(needs_analysis=False))
    )
    events = []

    result = await orchestrator.run("update with a new counter", EXISTING, events.append)

    assert result.success
    assert result.metadata["intent"] == "MODIFY"
    assert result.metadata["rerouted_to"] == "CREATE_NEW"
    assert result.metadata["stages"][:2] == ["analyzer", "planner"]
    assert result.metadata["estimated_tokens"] == 6100 + 11300
    assert agents["planner"].calls[0]["intent"] is Intent.CREATE_NEW
    assert agents["modifier"].calls == []
    assert "No modifications needed, routing to CREATE_NEW..." in [e.message for e in events]


@pytest.mark.asyncio
async def test_debug_fixes_located_file():
    analysis = CodebaseAnalysis(error_file="App.jsx", error_type="TypeError")
    orchestrator, agents = _orchestrator(analyzer=FakeAnalyzer(analysis))

    result = await orchestrator.run("fix the crash", EXISTING)

    assert result.success
    assert result.metadata["stages"] == ["analyzer", "debugger", "modifier", "validator"]
    call = agents["modifier"].calls[0]
    assert call["name"] == "App.jsx"
    assert call["instruction"] == "Fix: items is undefined on first render"
    assert call["fix_strategy"].approach == "Default items to []"


@pytest.mark.asyncio
async def test_debug_without_error_location_fails():
    orchestrator, agents = _orchestrator(analyzer=FakeAnalyzer(CodebaseAnalysis()))

    result = await orchestrator.run("fix the crash", EXISTING)

    assert not result.success
    assert result.error == "Could not identify error location"
    assert result.error_detail.stage is StageName.ANALYZER
    assert result.error_detail.kind is ErrorKind.STAGE_FAILURE
    assert agents["debugger"].calls == 0
    assert result.artifacts == {}


@pytest.mark.asyncio
async def test_validator_reports_unfixable_artifact():
    analysis = CodebaseAnalysis(files_to_modify=["App.jsx"])
    orchestrator, _ = _orchestrator(
        analyzer=FakeAnalyzer(analysis),
        modifier=FakeModifier(output="export default function App() {\n  return null;\n"),
    )

    result = await orchestrator.run("update the title", EXISTING)

    assert not result.success
    assert result.error_detail.stage is StageName.VALIDATOR
    assert result.error_detail.kind is ErrorKind.VALIDATION_CRITICAL
    assert result.error_detail.artifact == "App.jsx"
    assert "Unbalanced braces" in result.error


@pytest.mark.asyncio
async def test_style_change_restyles_classname_files():
    orchestrator, agents = _orchestrator(analyzer=FakeAnalyzer(CodebaseAnalysis()))

    result = await orchestrator.run("redesign it with warmer colors", EXISTING)

    assert result.success
    assert result.metadata["stages"] == ["analyzer", "ux-designer", "modifier"]
    assert agents["ux_designer"].calls[0]["mode"] == "redesign"
    current_styles = agents["ux_designer"].calls[0]["current_styles"]
    assert current_styles["colorScheme"]["primary"] == "text-cyan-400"
    call = agents["modifier"].calls[0]
    assert call["name"] == "App.jsx"
    assert call["instruction"] == STYLE_INSTRUCTION
    assert call["ux_design"].mode == "redesign"
    assert any("className" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_explain_returns_explanation_without_artifacts():
    analysis = CodebaseAnalysis(explanation="It renders a heading.")
    orchestrator, _ = _orchestrator(analyzer=FakeAnalyzer(analysis))

    result = await orchestrator.run("explain how this works", EXISTING)

    assert result.success
    assert result.explanation == "It renders a heading."
    assert result.artifacts == {}
    assert result.metadata["stages"] == ["analyzer"]


@pytest.mark.asyncio
async def test_progress_callback_errors_do_not_abort_run():
    orchestrator, _ = _orchestrator()

    def broken(event):
        raise ValueError("listener failed")

    result = await orchestrator.run("create a counter app", on_progress=broken)
    assert result.success


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected():
    planner = FakePlanner()
    planner.gate = asyncio.Event()
    orchestrator, _ = _orchestrator(planner=planner)

    task = asyncio.create_task(orchestrator.run("create a counter app"))
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        await orchestrator.run("create another app")

    planner.gate.set()
    result = await task
    assert result.success
    assert orchestrator.phase is RunPhase.COMPLETED
