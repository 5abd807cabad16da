# agents/debugger_agent.py
import structlog
from config import settings
from core.llm_interface import build_request, llm_service, truncate_text_by_tokens
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts

from models import BugDiagnosis, CodebaseAnalysis

logger = structlog.get_logger(__name__)


class DebuggerAgent:
    """Diagnoses the root cause of a located bug."""

    def __init__(self, model_name: str = settings.DEBUGGER_MODEL):
        self.model_name = model_name
        logger.info(f"DebuggerAgent initialized with model: {self.model_name}")

    async def diagnose(
        self,
        message: str,
        analysis: CodebaseAnalysis,
        code: str,
        guidance: str = "",
    ) -> tuple[BugDiagnosis, TokenUsage]:
        system_prompt, user_prompt = render_stage_prompts(
            "debugger_agent",
            {
                "message": message,
                "analysis": analysis,
                "code": truncate_text_by_tokens(
                    code, self.model_name, settings.MAX_ARTIFACT_PROMPT_TOKENS
                ),
                "guidance": guidance,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_DIAGNOSIS,
                settings.TEMPERATURE_DIAGNOSIS,
            )
        )
        diagnosis = BugDiagnosis.model_validate(parse_llm_json(response.text))
        logger.info(
            f"Diagnosis for {analysis.error_file}: {diagnosis.error_type}: "
            f"{diagnosis.root_cause[:120]}"
        )
        return diagnosis, response.usage
