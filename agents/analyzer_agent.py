# agents/analyzer_agent.py
"""Whole-codebase analysis feeding the modify, debug, style and explain flows."""

from collections.abc import Mapping
from enum import Enum

import structlog
from config import settings
from core.llm_interface import build_request, llm_service, truncate_text_by_tokens
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts
from utils import resolve_artifact_name, resolve_artifact_names

from models import CodebaseAnalysis

logger = structlog.get_logger(__name__)


class AnalysisMode(str, Enum):
    MODIFICATION = "modification"
    DEBUG = "debug"
    STYLE_EXTRACTION = "style_extraction"
    EXPLAIN = "explain"


class AnalyzerAgent:
    """Reads every artifact and decides what a request touches."""

    def __init__(self, model_name: str = settings.ANALYZER_MODEL):
        self.model_name = model_name
        logger.info(f"AnalyzerAgent initialized with model: {self.model_name}")

    def _prompt_artifacts(self, artifacts: Mapping[str, str]) -> dict[str, str]:
        return {
            name: truncate_text_by_tokens(
                text, self.model_name, settings.MAX_ARTIFACT_PROMPT_TOKENS
            )
            for name, text in sorted(artifacts.items())
        }

    def _resolve_names(
        self, analysis: CodebaseAnalysis, known: list[str]
    ) -> CodebaseAnalysis:
        """Map the artifact names the model mentions onto existing ones."""
        resolved_targets = {}
        for name, targets in analysis.change_targets.items():
            target = resolve_artifact_name(name, known)
            if target is None:
                logger.warning(f"Analyzer named unknown artifact '{name}'; ignoring its targets.")
                continue
            resolved_targets.setdefault(target, []).extend(targets)

        files_to_modify = resolve_artifact_names(analysis.files_to_modify, known)
        dropped = len(analysis.files_to_modify) - len(files_to_modify)
        if dropped:
            logger.warning(f"Dropped {dropped} unknown or duplicate files from the analysis.")

        error_file = None
        if analysis.error_file:
            error_file = resolve_artifact_name(analysis.error_file, known)
            if error_file is None:
                logger.warning(
                    f"Analyzer error location '{analysis.error_file}' is not a known artifact."
                )

        return analysis.model_copy(
            update={
                "files_to_modify": files_to_modify,
                "change_targets": resolved_targets,
                "error_file": error_file,
                "styled_files": resolve_artifact_names(analysis.styled_files, known),
                "relevant_files": resolve_artifact_names(analysis.relevant_files, known),
            }
        )

    async def analyze(
        self,
        message: str,
        artifacts: Mapping[str, str],
        mode: AnalysisMode = AnalysisMode.MODIFICATION,
        guidance: str = "",
    ) -> tuple[CodebaseAnalysis, TokenUsage]:
        if not artifacts:
            logger.info("No existing artifacts to analyze.")
            return (
                CodebaseAnalysis(
                    needs_analysis=False, reasoning="No existing files to analyze"
                ),
                TokenUsage(),
            )

        system_prompt, user_prompt = render_stage_prompts(
            "analyzer_agent",
            {
                "message": message,
                "mode": mode.value,
                "artifacts": self._prompt_artifacts(artifacts),
                "entry_artifact": settings.ENTRY_ARTIFACT_NAME,
                "guidance": guidance,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_ANALYSIS,
                settings.TEMPERATURE_ANALYSIS,
            )
        )
        analysis = CodebaseAnalysis.model_validate(parse_llm_json(response.text))
        analysis = self._resolve_names(analysis, list(artifacts))
        logger.info(
            f"Analysis ({mode.value}): {len(analysis.files_to_modify)} files to modify, "
            f"error file: {analysis.error_file}, {len(analysis.styled_files)} styled files"
        )
        return analysis, response.usage
