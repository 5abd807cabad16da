# agents/planner_agent.py
import structlog
from config import settings
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts

from models import ProjectPlan
from orchestration.models import ForgeRequest, Intent

logger = structlog.get_logger(__name__)


class PlannerAgent:
    """LLM-powered project planner for new or extended codebases."""

    def __init__(self, model_name: str = settings.PLANNER_MODEL):
        self.model_name = model_name
        logger.info(f"PlannerAgent initialized with model: {self.model_name}")

    async def plan(
        self,
        request: ForgeRequest,
        intent: Intent = Intent.CREATE_NEW,
        guidance: str = "",
        feedback: str | None = None,
        previous_plan: ProjectPlan | None = None,
    ) -> tuple[ProjectPlan, TokenUsage]:
        """Produce a file-by-file plan for ``request``.

        When ``feedback`` is given the previous plan is sent back together with
        the reviewer's instructions and a revised plan is returned.
        """
        context = {
            "message": request.message,
            "intent": intent.value,
            "existing_names": sorted(request.existing_artifacts),
            "entry_artifact": settings.ENTRY_ARTIFACT_NAME,
            "guidance": guidance,
            "feedback": feedback,
            "previous_plan": previous_plan,
        }
        system_prompt, user_prompt = render_stage_prompts("planner_agent", context)
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_PLANNING,
                settings.TEMPERATURE_PLANNING,
            )
        )
        plan = ProjectPlan.model_validate(parse_llm_json(response.text))

        if not plan.planned_files():
            logger.warning(
                f"Planner returned no files for '{request.message[:60]}'. "
                f"Defaulting to '{settings.ENTRY_ARTIFACT_NAME}'."
            )
            plan.files_to_create = [settings.ENTRY_ARTIFACT_NAME]
        logger.info(
            f"Plan ready with {len(plan.planned_files())} files"
            f"{' (revised)' if feedback else ''}: {plan.planned_files()}"
        )
        return plan, response.usage
