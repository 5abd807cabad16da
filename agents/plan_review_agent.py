# agents/plan_review_agent.py
import structlog
from config import settings
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts

from models import PlanReview, ProjectPlan

logger = structlog.get_logger(__name__)


class PlanReviewAgent:
    """Critiques a project plan before any code is generated."""

    def __init__(self, model_name: str = settings.PLAN_REVIEWER_MODEL):
        self.model_name = model_name
        logger.info(f"PlanReviewAgent initialized with model: {self.model_name}")

    async def review(
        self, message: str, plan: ProjectPlan
    ) -> tuple[PlanReview, TokenUsage]:
        system_prompt, user_prompt = render_stage_prompts(
            "plan_review_agent",
            {
                "message": message,
                "plan": plan,
                "approval_score": settings.PLAN_APPROVAL_SCORE,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_PLAN_REVIEW,
                settings.TEMPERATURE_PLAN_REVIEW,
            )
        )
        review = PlanReview.model_validate(parse_llm_json(response.text))
        logger.info(
            f"Plan review: score {review.quality_score}/100, "
            f"colors {review.color_creativity_score}/100, "
            f"{'approved' if review.approved else 'needs revision'} "
            f"({len(review.issues)} issues)"
        )
        return review, response.usage
