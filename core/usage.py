# core/usage.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class TokenUsage:
    """LLM token usage metrics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0

    @classmethod
    def from_api(cls, usage: dict[str, Any] | None) -> TokenUsage:
        """Build usage from a chat-completions ``usage`` block."""
        if not usage or not isinstance(usage, dict):
            return cls()
        details = usage.get("completion_tokens_details") or {}
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = int(usage.get("total_tokens") or prompt + completion)
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total,
            reasoning_tokens=int(details.get("reasoning_tokens") or 0),
        )

    def add(self, usage: TokenUsage | dict[str, int] | None) -> None:
        """Accumulate usage values from another instance or dictionary."""
        if not usage:
            return
        if isinstance(usage, TokenUsage):
            self.prompt_tokens += usage.prompt_tokens
            self.completion_tokens += usage.completion_tokens
            self.total_tokens += usage.total_tokens
            self.reasoning_tokens += usage.reasoning_tokens
        else:
            self.prompt_tokens += usage.get("prompt_tokens", 0)
            self.completion_tokens += usage.get("completion_tokens", 0)
            self.total_tokens += usage.get("total_tokens", 0)
            self.reasoning_tokens += usage.get("reasoning_tokens", 0)

    def __bool__(self) -> bool:
        return bool(
            self.prompt_tokens
            or self.completion_tokens
            or self.total_tokens
            or self.reasoning_tokens
        )

    def get_if_used(self) -> dict[str, int] | None:
        """Return usage dict only if any tokens were accumulated."""
        if self:
            return {
                "prompt_tokens": self.prompt_tokens,
                "completion_tokens": self.completion_tokens,
                "total_tokens": self.total_tokens,
                "reasoning_tokens": self.reasoning_tokens,
            }
        return None
