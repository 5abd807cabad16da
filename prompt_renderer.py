# prompt_renderer.py
"""Utilities for rendering stage prompts using Jinja2 templates."""

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel

PROMPTS_PATH = Path(__file__).parent / "prompts"
_env = Environment(
    loader=FileSystemLoader(PROMPTS_PATH),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)


def _default_json_serializer(value: Any) -> Any:
    """Serialize pydantic models for JSON output."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    raise TypeError(
        f"Object of type {value.__class__.__name__} is not JSON serializable"
    )


def _tojson(value: Any, indent: int | None = 2) -> str:
    """JSON filter that supports pydantic models.

    Prompts are plain text, so unlike Jinja's built-in filter nothing is
    HTML-escaped.
    """
    return json.dumps(
        value, default=_default_json_serializer, indent=indent, ensure_ascii=False
    )


_env.filters["tojson"] = _tojson


def render_prompt(template_name: str, context: dict[str, Any]) -> str:
    """Render a Jinja2 template from the prompts directory."""
    template = _env.get_template(template_name)
    return template.render(**context).strip()


def render_stage_prompts(agent_dir: str, context: dict[str, Any]) -> tuple[str, str]:
    """Render ``<agent_dir>/system.j2`` and ``<agent_dir>/user.j2``."""
    return (
        render_prompt(f"{agent_dir}/system.j2", context),
        render_prompt(f"{agent_dir}/user.j2", context),
    )
