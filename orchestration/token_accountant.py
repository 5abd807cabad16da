from __future__ import annotations

import logging

from core.usage import TokenUsage
from orchestration.models import StageName

logger = logging.getLogger(__name__)


class TokenAccountant:
    """Accumulate and log token usage across stages."""

    def __init__(self) -> None:
        self.total: int = 0
        self.stage_totals: dict[str, int] = {}
        self.reasoning_total: int = 0

    def record_usage(
        self, stage: StageName | str, usage: dict[str, int] | TokenUsage | None
    ) -> int:
        """Record token usage for a stage and return the tokens added."""
        stage_name = stage.value if isinstance(stage, StageName) else stage

        usage_dict: dict[str, int]
        if isinstance(usage, TokenUsage):
            usage_dict = usage.get_if_used() or {}
        else:
            usage_dict = usage or {}

        if not usage_dict:
            return 0

        added = usage_dict.get("total_tokens")
        if not isinstance(added, int) or added <= 0:
            prompt = usage_dict.get("prompt_tokens", 0)
            completion = usage_dict.get("completion_tokens", 0)
            if not isinstance(prompt, int) or not isinstance(completion, int):
                logger.warning(
                    "FORGE Activity: '%s' - token counts missing or not int in usage data. Tokens not added. Usage: %s",
                    stage_name,
                    usage_dict,
                )
                return 0
            added = prompt + completion

        self.total += added
        self.reasoning_total += usage_dict.get("reasoning_tokens", 0) or 0
        self.stage_totals[stage_name] = self.stage_totals.get(stage_name, 0) + added
        logger.info(
            "FORGE Activity: Tokens from '%s': %s. Total this instance: %s",
            stage_name,
            added,
            self.total,
        )
        return added

    def get_stage_total(self, stage: StageName | str) -> int:
        """Return accumulated tokens for a stage."""
        stage_name = stage.value if isinstance(stage, StageName) else stage
        return self.stage_totals.get(stage_name, 0)
