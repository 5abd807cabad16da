# parsing/__init__.py
"""Extraction and repair of JSON payloads embedded in model output."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from config import settings
from core.errors import StructuredParseError

logger = structlog.get_logger(__name__)

__all__ = [
    "StructuredParseError",
    "autocomplete_truncated_json",
    "extract_json_candidate",
    "parse_llm_json",
    "repair_json_text",
]

_DELIMITED_RE = re.compile(r"<<<JSON>>>(.*?)<<</JSON>>>", re.DOTALL)
_FENCED_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_FENCE_MARKER_RE = re.compile(r"```(?:json|JSON)?")
_CLOSERS = {"{": "}", "[": "]"}

_decoder = json.JSONDecoder()


def _balanced_span(text: str) -> str:
    """Return text from the first ``{``/``[`` to the last matching closer."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return ""
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end < start:
        return text[start:].strip()
    return text[start : end + 1].strip()


def extract_json_candidate(text: str) -> str:
    """Pick the most likely JSON substring of ``text``.

    Strategies in order: ``<<<JSON>>>`` delimiters, a fenced code block, the
    span between the first opener and its last closer. The first non-empty
    candidate wins; otherwise the fence-stripped text is returned.
    """
    if not text:
        return ""

    match = _DELIMITED_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    match = _FENCED_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    span = _balanced_span(text)
    if span:
        return span

    return _FENCE_MARKER_RE.sub("", text).strip()


def _strip_comments(text: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline == -1 else newline
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ",":
            rest = text[i + 1 :].lstrip()
            if rest[:1] in ("}", "]"):
                continue
        out.append(ch)
    return "".join(out)


def repair_json_text(candidate: str) -> str:
    """Remove comments and trailing commas outside string literals."""
    return _strip_trailing_commas(_strip_comments(candidate)).strip()


def autocomplete_truncated_json(text: str) -> str:
    """Close whatever a truncated JSON document left open.

    Closes an unterminated string, drops a dangling comma, supplies ``null``
    for a key left without a value and appends the missing closers in stack
    order. Text that is missing ``k`` closers gets exactly ``k`` closers.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]") and stack and stack[-1] == ch:
            stack.pop()

    completed = text
    if in_string:
        if escaped:
            completed = completed[:-1]
        completed += '"'

    completed = completed.rstrip()
    if completed.endswith(","):
        completed = completed[:-1].rstrip()
    if completed.endswith(":"):
        completed += " null"

    return completed + "".join(reversed(stack))


def _preview(text: str) -> str:
    return text[: settings.JSON_PREVIEW_CHARS]


def parse_llm_json(raw_text: str) -> dict[str, Any] | list[Any]:
    """Parse the JSON payload of a model response.

    Raises:
        StructuredParseError: if no strategy yields a parseable object/array.
    """
    candidate = extract_json_candidate(raw_text or "")
    if not candidate:
        raise StructuredParseError(
            "Failed to parse JSON response: no JSON content found",
            preview=_preview(raw_text or ""),
        )

    repaired = repair_json_text(candidate)
    try:
        return _ensure_container(json.loads(repaired), candidate)
    except json.JSONDecodeError as e:
        first_error = e

    try:
        value, end = _decoder.raw_decode(repaired)
        logger.debug(
            f"Parsed first complete JSON value; ignored {len(repaired) - end} trailing chars."
        )
        return _ensure_container(value, candidate)
    except json.JSONDecodeError:
        pass

    completed = autocomplete_truncated_json(repaired)
    if completed != repaired:
        try:
            value = json.loads(completed)
        except json.JSONDecodeError:
            pass
        else:
            logger.warning("Recovered truncated JSON by closing open structures.")
            return _ensure_container(value, candidate)

    logger.error(
        f"Failed to parse JSON response: {first_error}",
        preview=_preview(candidate),
    )
    raise StructuredParseError(
        f"Failed to parse JSON response: {first_error}", preview=_preview(candidate)
    )


def _ensure_container(value: Any, candidate: str) -> dict[str, Any] | list[Any]:
    if not isinstance(value, dict | list):
        raise StructuredParseError(
            f"Failed to parse JSON response: expected object or array, got {type(value).__name__}",
            preview=_preview(candidate),
        )
    return value
