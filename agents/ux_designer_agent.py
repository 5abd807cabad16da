# agents/ux_designer_agent.py
import re
from collections.abc import Mapping
from typing import Any

import structlog
from config import settings
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts

from models import AppIdentity, UXDesign

logger = structlog.get_logger(__name__)

_DARK_BACKGROUNDS = ("slate-900", "gray-900", "zinc-900")
_NEUTRAL_TEXT = ("gray", "slate", "white")


def _unique_matches(pattern: str, text: str) -> list[str]:
    return list(dict.fromkeys(re.findall(pattern, text)))


def extract_ux_from_code(artifacts: Mapping[str, str]) -> dict[str, Any]:
    """Derive the current design system from Tailwind classes in ``artifacts``.

    Returns camelCase keys so the result can be passed straight to
    ``UXDesign.model_validate`` or into a prompt.
    """
    all_code = "\n".join(artifacts.values())
    bg_colors = _unique_matches(r"bg-[\w/-]+", all_code)
    text_colors = _unique_matches(r"text-[\w/-]+", all_code)
    border_colors = _unique_matches(r"border-[\w/-]+", all_code)
    shadows = _unique_matches(r"shadow-[\w-]+", all_code)
    corners = _unique_matches(r"rounded-[\w-]+", all_code)
    gaps = _unique_matches(r"gap-\d+", all_code)

    is_dark = any(c in bg for bg in bg_colors for c in _DARK_BACKGROUNDS)
    accent_texts = [t for t in text_colors if not any(n in t for n in _NEUTRAL_TEXT)]
    glass = "backdrop-blur" in all_code

    return {
        "appIdentity": {
            "name": "Existing App",
            "tagline": "Maintaining current design",
            "tone": "professional",
        },
        "colorScheme": {
            "theme": "dark" if is_dark else "light",
            "background": bg_colors[0] if bg_colors else "bg-slate-900",
            "primary": accent_texts[0] if accent_texts else "cyan-400",
            "secondary": text_colors[1] if len(text_colors) > 1 else "purple-500",
            "accent": text_colors[2] if len(text_colors) > 2 else "indigo-500",
            "text": {
                "primary": "text-gray-100" if is_dark else "text-gray-900",
                "secondary": "text-gray-300" if is_dark else "text-gray-700",
                "muted": "text-gray-400" if is_dark else "text-gray-500",
            },
            "surface": bg_colors[1]
            if len(bg_colors) > 1
            else ("bg-slate-800/40" if is_dark else "bg-white"),
            "border": border_colors[0]
            if border_colors
            else ("border-slate-700/50" if is_dark else "border-gray-200"),
        },
        "designStyle": {
            "aesthetic": "glassmorphism" if glass else "minimalist",
            "corners": corners[0] if corners else "rounded-xl",
            "shadows": "moderate" if shadows else "subtle",
            "effects": "backdrop-blur" if glass else "none",
            "styleRationale": "Extracted from existing code",
        },
        "layoutStructure": {
            "spacing": gaps[0] if gaps else "gap-6",
        },
    }


class UXDesignerAgent:
    """Creates or evolves the design system shared by every generated file."""

    def __init__(self, model_name: str = settings.DESIGNER_MODEL):
        self.model_name = model_name
        logger.info(f"UXDesignerAgent initialized with model: {self.model_name}")

    @staticmethod
    def default_design(
        mode: str = "create_new", app_identity: AppIdentity | None = None
    ) -> UXDesign:
        """Polished dark glassmorphism theme used when design fails."""
        return UXDesign(
            app_identity=app_identity or AppIdentity(),
            mode=mode,
            is_fallback=True,
        )

    async def design(
        self,
        message: str,
        app_identity: AppIdentity | None = None,
        mode: str = "create_new",
        current_styles: dict[str, Any] | None = None,
        guidance: str = "",
    ) -> tuple[UXDesign, TokenUsage]:
        system_prompt, user_prompt = render_stage_prompts(
            "ux_designer_agent",
            {
                "message": message,
                "app_identity": app_identity,
                "mode": mode,
                "current_styles": current_styles,
                "guidance": guidance,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_DESIGN,
                settings.TEMPERATURE_UX_DESIGN,
            )
        )
        data = parse_llm_json(response.text)
        if isinstance(data, dict) and app_identity is not None:
            data.setdefault("appIdentity", app_identity.to_prompt_dict())
        design = UXDesign.model_validate(data)
        design.mode = mode
        logger.info(
            f"UX design ({mode}) ready: '{design.app_identity.name}', "
            f"{design.color_scheme.theme} theme, {design.design_style.aesthetic}"
        )
        return design, response.usage
