# agents/generator_agent.py
from collections.abc import Mapping

import structlog
from config import settings
from core.errors import StageFailure
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from processing.code_cleanup import clean_generated_code
from prompt_renderer import render_stage_prompts

from models import ArchitectureDesign, ProjectPlan, UXDesign

logger = structlog.get_logger(__name__)


class GeneratorAgent:
    """Writes one new artifact at a time from the plan and design system."""

    def __init__(self, model_name: str = settings.GENERATOR_MODEL):
        self.model_name = model_name
        logger.info(f"GeneratorAgent initialized with model: {self.model_name}")

    async def generate(
        self,
        artifact_name: str,
        message: str,
        plan: ProjectPlan,
        ux_design: UXDesign,
        architecture: ArchitectureDesign,
        generated: Mapping[str, str] | None = None,
        guidance: str = "",
    ) -> tuple[str, TokenUsage]:
        """Return cleaned source text for ``artifact_name``."""
        context = {
            "artifact_name": artifact_name,
            "message": message,
            "plan_summary": plan.summary or "N/A",
            "file_spec": plan.file_details.get(artifact_name),
            "folder_info": architecture.file_structure.get(artifact_name),
            "dependencies": architecture.dependencies.get(artifact_name, []),
            "generated_names": sorted(generated or {}),
            "ux_design": ux_design,
            "entry_artifact": settings.ENTRY_ARTIFACT_NAME,
            "guidance": guidance,
        }
        system_prompt, user_prompt = render_stage_prompts("generator_agent", context)
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_GENERATION,
                settings.TEMPERATURE_GENERATION,
            )
        )
        code = clean_generated_code(response.text)
        if not code.strip():
            raise StageFailure(
                f"Generated output for {artifact_name} contained no code",
                artifact_name=artifact_name,
            )
        logger.info(f"Generated {artifact_name} ({len(code.splitlines())} lines).")
        return code, response.usage
