# processing/artifact_validator.py
"""Deterministic validation and single-pass auto-fixing of generated code.

Every check is a row in ``VALIDATION_RULES``. A rule names the modes it runs
in, its severity, how to detect the problem and, optionally, a rewrite that
removes it. ``validate_artifact`` detects, applies each matched rewrite once,
then re-runs detection once on the rewritten text without fixing again.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from config import settings

logger = structlog.get_logger(__name__)


class ValidationMode(str, Enum):
    FULL = "full"
    FAST = "fast"
    SYNTAX_ONLY = "syntax"
    FORMAT_ONLY = "format"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    kind: str
    severity: Severity
    message: str

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL


@dataclass(frozen=True)
class ValidationFix:
    kind: str
    apply: Callable[[str], str]
    description: str = ""


@dataclass(frozen=True)
class ValidationRule:
    kind: str
    severity: Severity
    modes: frozenset[ValidationMode]
    detect: Callable[[str, str], list[str]]
    rewrite: Callable[[str], str] | None = None
    fix_description: str = ""


@dataclass
class ValidationReport:
    artifact_name: str
    valid: bool
    text: str
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    fixes: list[ValidationFix] = field(default_factory=list)
    auto_fixed: bool = False
    remaining: list[ValidationIssue] = field(default_factory=list)

    @property
    def remaining_critical(self) -> list[ValidationIssue]:
        return [issue for issue in self.remaining if issue.is_critical]

    def summary(self) -> str:
        fixed = f", {len(self.fixes)} fix(es) applied" if self.auto_fixed else ""
        return (
            f"{self.artifact_name or '<artifact>'}: "
            f"{len(self.errors)} error(s), {len(self.warnings)} warning(s){fixed}, "
            f"{'valid' if self.valid else 'invalid'}"
        )


# --- Delimiter balance -------------------------------------------------------

_PAIRS = {"{": "}", "(": ")", "[": "]"}
_PAIR_NAMES = {"{": "braces", "(": "parentheses", "[": "brackets"}


def _is_apostrophe(text: str, i: int) -> bool:
    return 0 < i < len(text) - 1 and text[i - 1].isalnum() and text[i + 1].isalnum()


def count_delimiters(text: str) -> dict[str, tuple[int, int]]:
    """Count ``{}``, ``()`` and ``[]`` outside strings and comments.

    Single and double quoted strings end at their closing quote or at the end
    of the line; template literals may span lines. A single quote between two
    word characters is an apostrophe in JSX text and opens no string.
    """
    counts = {opener: [0, 0] for opener in _PAIRS}
    closers = {closer: opener for opener, closer in _PAIRS.items()}
    quote: str | None = None
    escaped = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            elif ch == "\n" and quote != "`":
                quote = None
            i += 1
            continue
        if ch in ("'", '"', "`"):
            if not (ch == "'" and _is_apostrophe(text, i)):
                quote = ch
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline == -1 else newline
            continue
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = n if close == -1 else close + 2
            continue
        elif ch in _PAIRS:
            counts[ch][0] += 1
        elif ch in closers:
            counts[closers[ch]][1] += 1
        i += 1
    return {opener: (c[0], c[1]) for opener, c in counts.items()}


def _detect_unbalanced(text: str, _name: str) -> list[str]:
    messages = []
    for opener, (opened, closed) in count_delimiters(text).items():
        if opened != closed:
            messages.append(
                f"Unbalanced {_PAIR_NAMES[opener]}: {opened} open, {closed} close"
            )
    return messages


_EXPORT_RE = re.compile(r"\bexport\s+(?:default\b|\{|const\b|function\b|class\b|let\b|async\b)")


def _detect_missing_export(text: str, _name: str) -> list[str]:
    if _EXPORT_RE.search(text):
        return []
    return ["No export statement found"]


# --- Imports -----------------------------------------------------------------

_IMPORT_STATEMENT_RE = re.compile(
    r"""^[ \t]*import\s+(?:[^;'"]*?\s+from\s+)?['"]([^'"\n]+)['"][ \t]*;?[ \t]*\n?""",
    re.MULTILINE,
)
_REQUIRE_STATEMENT_RE = re.compile(
    r"""^[ \t]*(?:const|let|var)\s+[^=\n]+=\s*require\(\s*['"]([^'"\n]+)['"]\s*\)[ \t]*;?[ \t]*\n?""",
    re.MULTILINE,
)
_REQUIRE_CALL_RE = re.compile(r"""require\(\s*['"]([^'"\n]+)['"]\s*\)""")


def package_name(specifier: str) -> str:
    """Return the installable package name for an import specifier."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def import_specifiers(text: str) -> list[str]:
    """Return every ``import``/``require`` specifier in source order."""
    found = [m.group(1) for m in _IMPORT_STATEMENT_RE.finditer(text)]
    found.extend(m.group(1) for m in _REQUIRE_CALL_RE.finditer(text))
    return found


def _is_banned(specifier: str) -> bool:
    return package_name(specifier) in settings.BANNED_PACKAGES


def _detect_banned_packages(text: str, _name: str) -> list[str]:
    seen: list[str] = []
    for spec in import_specifiers(text):
        pkg = package_name(spec)
        if _is_banned(spec) and pkg not in seen:
            seen.append(pkg)
    return [
        f"Banned package '{pkg}' - not available in browser environment" for pkg in seen
    ]


def _remove_banned_imports(text: str) -> str:
    def drop(match: re.Match[str]) -> str:
        return "" if _is_banned(match.group(1)) else match.group(0)

    text = _IMPORT_STATEMENT_RE.sub(drop, text)
    return _REQUIRE_STATEMENT_RE.sub(drop, text)


def _detect_external_packages(text: str, _name: str) -> list[str]:
    seen: list[str] = []
    for spec in import_specifiers(text):
        if spec.startswith((".", "/")) or _is_banned(spec):
            continue
        if spec.startswith(tuple(settings.ALLOWED_PACKAGE_PREFIXES)):
            continue
        if spec not in seen:
            seen.append(spec)
    return [f"External package '{spec}' may not be available" for spec in seen]


# --- Formatting ----------------------------------------------------------------

_SINGLE_QUOTE_IMPORT_RE = re.compile(
    r"""^([ \t]*import\s+(?:[^;'"]*?\s+from\s+)?)'([^'\n]+)'""", re.MULTILINE
)
_SINGLE_QUOTE_CLASSNAME_RE = re.compile(r"className='([^'\n]*)'")


def _detect_single_quote_imports(text: str, _name: str) -> list[str]:
    if _SINGLE_QUOTE_IMPORT_RE.search(text):
        return ["Use double quotes in imports"]
    return []


def _double_quote_imports(text: str) -> str:
    return _SINGLE_QUOTE_IMPORT_RE.sub(r'\1"\2"', text)


def _detect_single_quote_classname(text: str, _name: str) -> list[str]:
    if _SINGLE_QUOTE_CLASSNAME_RE.search(text):
        return ["Use double quotes in JSX attributes"]
    return []


def _double_quote_classname(text: str) -> str:
    return _SINGLE_QUOTE_CLASSNAME_RE.sub(r'className="\1"', text)


# --- Initialization --------------------------------------------------------------

_REACT_DOM_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+[^;'"]*?\bReactDOM\b[^;'"]*?\s+from\s+['"]react-dom(?:/client)?['"][ \t]*;?[ \t]*\n?""",
    re.MULTILINE,
)
_ROOT_API_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+[^;'"]*?\s+from\s+['"]react-dom(?:/client)?['"][ \t]*;?[ \t]*\n?""",
    re.MULTILINE,
)
_INIT_STATEMENT_RE = re.compile(
    r"^[ \t]*(?:(?:const|let|var)\s+\w+\s*=\s*)?"
    r"(?:ReactDOM\.createRoot|createRoot|\w+\.render)\(.*?\)[ \t]*;?[ \t]*(?:\n|$)",
    re.MULTILINE | re.DOTALL,
)


def _detect_react_dom_import(text: str, _name: str) -> list[str]:
    if _REACT_DOM_IMPORT_RE.search(text):
        return ["Do not import ReactDOM - initialization is handled by the system"]
    return []


def _remove_react_dom_import(text: str) -> str:
    return _REACT_DOM_IMPORT_RE.sub("", text)


def _detect_root_initialization(text: str, _name: str) -> list[str]:
    if "createRoot" in text or ".render(" in text:
        return ["Do not call createRoot or render - system handles initialization"]
    return []


def _remove_root_initialization(text: str) -> str:
    text = _INIT_STATEMENT_RE.sub("", text)
    return _ROOT_API_IMPORT_RE.sub("", text)


def _detect_dom_access(text: str, _name: str) -> list[str]:
    if "document.getElementById" in text:
        return ["Avoid direct DOM access - let system handle mounting"]
    return []


# --- Output shape ------------------------------------------------------------------

_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*\n?", re.MULTILINE)
_CODE_STARTS = (
    "import",
    "export",
    "const",
    "let",
    "var",
    "function",
    "class",
    "async",
    "//",
    "/*",
    "'use",
    '"use',
)


def _detect_markdown_fence(text: str, _name: str) -> list[str]:
    if "```" in text:
        return ["Code contains markdown backticks - should be raw code only"]
    return []


def _strip_markdown_fences(text: str) -> str:
    return _FENCE_LINE_RE.sub("", text).replace("```", "")


def _detect_leading_prose(text: str, _name: str) -> list[str]:
    stripped = text.strip()
    if stripped and not stripped.startswith(_CODE_STARTS):
        return ["Code should start directly with imports or declarations"]
    return []


_SYNTAX = frozenset(
    {ValidationMode.SYNTAX_ONLY, ValidationMode.FAST, ValidationMode.FULL}
)
_FORMAT = frozenset({ValidationMode.FORMAT_ONLY, ValidationMode.FULL})
_PACKAGES = frozenset({ValidationMode.FAST, ValidationMode.FULL})
_FULL = frozenset({ValidationMode.FULL})

VALIDATION_RULES: tuple[ValidationRule, ...] = (
    ValidationRule("unbalanced-delimiters", Severity.CRITICAL, _SYNTAX, _detect_unbalanced),
    ValidationRule("missing-export", Severity.WARNING, _SYNTAX, _detect_missing_export),
    ValidationRule(
        "banned-package",
        Severity.CRITICAL,
        _PACKAGES,
        _detect_banned_packages,
        _remove_banned_imports,
        "Remove imports of packages unavailable in the browser",
    ),
    ValidationRule("external-package", Severity.WARNING, _PACKAGES, _detect_external_packages),
    ValidationRule(
        "single-quoted-import",
        Severity.WARNING,
        _FORMAT,
        _detect_single_quote_imports,
        _double_quote_imports,
        "Convert single quotes to double quotes in imports",
    ),
    ValidationRule(
        "single-quoted-classname",
        Severity.WARNING,
        _FORMAT,
        _detect_single_quote_classname,
        _double_quote_classname,
        "Convert single quotes to double quotes in JSX",
    ),
    ValidationRule(
        "react-dom-import",
        Severity.CRITICAL,
        _FULL,
        _detect_react_dom_import,
        _remove_react_dom_import,
        "Remove ReactDOM import",
    ),
    ValidationRule(
        "root-initialization",
        Severity.CRITICAL,
        _FULL,
        _detect_root_initialization,
        _remove_root_initialization,
        "Remove createRoot/render calls",
    ),
    ValidationRule("direct-dom-access", Severity.WARNING, _FULL, _detect_dom_access),
    ValidationRule(
        "markdown-fence",
        Severity.CRITICAL,
        _PACKAGES,
        _detect_markdown_fence,
        _strip_markdown_fences,
        "Remove markdown code fences",
    ),
    ValidationRule("leading-prose", Severity.WARNING, _FULL, _detect_leading_prose),
)


def _run_rules(
    text: str, artifact_name: str, mode: ValidationMode
) -> list[tuple[ValidationRule, ValidationIssue]]:
    findings: list[tuple[ValidationRule, ValidationIssue]] = []
    for rule in VALIDATION_RULES:
        if mode not in rule.modes:
            continue
        for message in rule.detect(text, artifact_name):
            findings.append((rule, ValidationIssue(rule.kind, rule.severity, message)))
    return findings


def validate_artifact(
    text: str,
    artifact_name: str = "",
    mode: ValidationMode | str = ValidationMode.FULL,
) -> ValidationReport:
    """Validate ``text`` and apply every matched rewrite exactly once."""
    mode = ValidationMode(mode)
    findings = _run_rules(text, artifact_name, mode)
    errors = [issue for _, issue in findings if issue.is_critical]
    warnings = [issue for _, issue in findings if not issue.is_critical]

    fixes: list[ValidationFix] = []
    for rule, _ in findings:
        if rule.rewrite is not None and all(f.kind != rule.kind for f in fixes):
            fixes.append(ValidationFix(rule.kind, rule.rewrite, rule.fix_description))

    fixed_text = text
    for fix in fixes:
        fixed_text = fix.apply(fixed_text)
    if fixed_text != text:
        fixed_text = fixed_text.strip() + "\n"

    auto_fixed = fixed_text != text
    if auto_fixed:
        remaining = [issue for _, issue in _run_rules(fixed_text, artifact_name, mode)]
    else:
        remaining = errors + warnings

    report = ValidationReport(
        artifact_name=artifact_name,
        valid=not any(issue.is_critical for issue in remaining),
        text=fixed_text,
        errors=errors,
        warnings=warnings,
        fixes=fixes,
        auto_fixed=auto_fixed,
        remaining=remaining,
    )
    if errors or warnings:
        logger.info(f"Validation {mode.value}: {report.summary()}")
        for issue in report.remaining_critical:
            logger.warning(
                f"Unresolved critical issue in '{artifact_name}': {issue.message}",
                kind=issue.kind,
            )
    return report


def quick_validate(text: str) -> bool:
    """Return ``True`` when delimiter balance checks pass."""
    return validate_artifact(text, mode=ValidationMode.SYNTAX_ONLY).valid
