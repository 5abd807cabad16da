# agents/modifier_agent.py
import structlog
from config import settings
from core.errors import StageFailure
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from processing.code_cleanup import clean_generated_code
from prompt_renderer import render_stage_prompts

from models import ArchitectureDesign, ChangeTarget, FixStrategy, UXDesign

logger = structlog.get_logger(__name__)


class ModifierAgent:
    """Rewrites one existing artifact according to an instruction."""

    def __init__(self, model_name: str = settings.MODIFIER_MODEL):
        self.model_name = model_name
        logger.info(f"ModifierAgent initialized with model: {self.model_name}")

    async def modify(
        self,
        artifact_name: str,
        current_text: str,
        instruction: str,
        change_targets: list[ChangeTarget] | None = None,
        fix_strategy: FixStrategy | None = None,
        ux_design: UXDesign | None = None,
        architecture: ArchitectureDesign | None = None,
        guidance: str = "",
    ) -> tuple[str, TokenUsage]:
        """Return the complete updated text of ``artifact_name``."""
        system_prompt, user_prompt = render_stage_prompts(
            "modifier_agent",
            {
                "artifact_name": artifact_name,
                "current_text": current_text,
                "instruction": instruction,
                "change_targets": change_targets or [],
                "fix_strategy": fix_strategy,
                "ux_design": ux_design,
                "architecture": architecture,
                "guidance": guidance,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_MODIFICATION,
                settings.TEMPERATURE_MODIFICATION,
            )
        )
        code = clean_generated_code(response.text)
        if not code.strip():
            raise StageFailure(
                f"Modified output for {artifact_name} contained no code",
                artifact_name=artifact_name,
            )
        logger.info(
            f"Modified {artifact_name}: {len(current_text.splitlines())} -> "
            f"{len(code.splitlines())} lines."
        )
        return code, response.usage
