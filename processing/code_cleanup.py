# processing/code_cleanup.py
"""Strip conversational wrapping from generated source code."""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(__name__)

_THINK_TAGS = ("think", "thinking", "thought", "reasoning", "analysis")
_FENCE_RE = re.compile(r"```(?:jsx|javascript|js|tsx|ts|typescript|css)?[ \t]*\n?")
_MULTI_FILE_RE = re.compile(
    r"\n\s*//\s+(?:components?|hooks?|lib|utils|styles)/[\w.-]+\.(?:jsx?|tsx?|css)\s*\n",
    re.IGNORECASE,
)
_BARE_IDENTIFIER_RE = re.compile(
    r"^\s*[A-Z][a-zA-Z0-9]*;\s*\n+(?=\s*(?:function|const|export|class))",
    re.MULTILINE,
)
_CODE_LINE_STARTS = (
    "import ",
    "export ",
    "const ",
    "let ",
    "var ",
    "function ",
    "class ",
    "async ",
    "//",
    "/*",
    "'use ",
    '"use ',
    ".",
    ":root",
    "@",
)
# Text after the last brace/semicolon longer than this is treated as prose.
_TRAILING_PROSE_CHARS = 50


def _remove_think_blocks(text: str) -> str:
    for tag in _THINK_TAGS:
        text = re.sub(
            rf"<\s*{tag}\s*>.*?<\s*/\s*{tag}\s*>", "", text, flags=re.DOTALL | re.IGNORECASE
        )
    return text


def clean_generated_code(raw_code: str) -> str:
    """Return the code portion of a model response.

    Removes reasoning blocks and markdown fences, keeps only the first file
    when several were emitted, drops prose before the first code line and
    trailing explanation after the last brace or semicolon.
    """
    if not raw_code:
        return ""

    cleaned = _remove_think_blocks(raw_code)
    cleaned = _FENCE_RE.sub("", cleaned).replace("```", "")

    multi = _MULTI_FILE_RE.search(cleaned)
    if multi:
        logger.warning(
            "Model emitted several files in one response; keeping only the first.",
            separator=multi.group(0).strip(),
        )
        cleaned = cleaned[: multi.start()]

    lines = cleaned.split("\n")
    first_code = next(
        (i for i, line in enumerate(lines) if line.strip().startswith(_CODE_LINE_STARTS)),
        0,
    )
    if first_code > 0:
        cleaned = "\n".join(lines[first_code:])

    cleaned = _BARE_IDENTIFIER_RE.sub("", cleaned)

    last_code = max(cleaned.rfind("}"), cleaned.rfind(";"))
    if 0 < last_code < len(cleaned.rstrip()) - _TRAILING_PROSE_CHARS:
        cleaned = cleaned[: last_code + 1]

    return cleaned.strip() + "\n"
