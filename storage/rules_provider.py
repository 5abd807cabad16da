# storage/rules_provider.py
"""Sources of environment rules folded into stage prompts."""

from __future__ import annotations

from typing import Protocol

from config import settings
from orchestration.models import ForgeRequest


class RulesProvider(Protocol):
    def get_guidance(self, request: ForgeRequest) -> str: ...


class StaticRulesProvider:
    """Fixed rules for the browser sandbox generated code runs in."""

    def __init__(self, extra_rules: list[str] | None = None) -> None:
        self.extra_rules = list(extra_rules or [])

    def get_guidance(self, request: ForgeRequest) -> str:
        rules = [
            "Code runs in a browser sandbox: only React and ReactDOM are available.",
            "Use ES module imports with double quotes; never use require().",
            f"Never import these packages: {', '.join(settings.BANNED_PACKAGES)}.",
            "Do not mount the app: no createRoot, render() or document.getElementById.",
            "Use <button onClick> for in-app navigation instead of <a href=\"#\">.",
            "Style with Tailwind utility classes.",
            f"'{settings.ENTRY_ARTIFACT_NAME}' is the entry component and must default-export it.",
        ]
        rules.extend(self.extra_rules)
        return "\n".join(f"- {rule}" for rule in rules)
