# processing/consistency_checker.py
"""Cross-artifact consistency checks over a set of generated source files."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from config import settings

logger = structlog.get_logger(__name__)

RESOLVABLE_EXTENSIONS = (".jsx", ".js", ".tsx", ".ts")
# Artifacts that are never imported as modules and need no export.
_NON_MODULE_EXTENSIONS = (".css", ".json", ".md", ".html", ".svg")

_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+(?:([^;'"]*?)\s+from\s+)?['"]([^'"\n]+)['"]""",
    re.MULTILINE,
)
_EXPORT_RE = re.compile(
    r"\bexport\s+(?:default\b|const\b|let\b|function\b|class\b|async\s+function\b|\{)"
)


@dataclass(frozen=True)
class ConsistencyIssue:
    artifact: str
    message: str
    severity: str
    line: int | None = None
    fix: str = ""


@dataclass
class ConsistencyReport:
    valid: bool = True
    errors: list[ConsistencyIssue] = field(default_factory=list)
    warnings: list[ConsistencyIssue] = field(default_factory=list)

    def messages(self) -> list[str]:
        return [f"{i.artifact}: {i.message}" for i in self.errors + self.warnings]


@dataclass(frozen=True)
class _ImportBinding:
    local_name: str
    specifier: str
    line: int


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _local_names(clause: str) -> list[str]:
    names: list[str] = []
    named = re.search(r"\{([^}]*)\}", clause)
    if named:
        for part in named.group(1).split(","):
            part = part.strip()
            if not part:
                continue
            local = part.split(" as ")[-1].strip()
            if local.startswith("type "):
                local = local[5:].strip()
            names.append(local)
        clause = clause[: named.start()] + clause[named.end() :]
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            names.append(part.split(" as ")[-1].strip())
        elif re.fullmatch(r"[A-Za-z_$][\w$]*", part):
            names.append(part)
    return names


def relative_imports(text: str) -> list[_ImportBinding]:
    """Return local bindings introduced by relative imports."""
    bindings: list[_ImportBinding] = []
    for match in _IMPORT_RE.finditer(text):
        clause, specifier = match.group(1), match.group(2)
        if not specifier.startswith("."):
            continue
        line = _line_of(text, match.start())
        if not clause:
            bindings.append(_ImportBinding("", specifier, line))
            continue
        for name in _local_names(clause):
            bindings.append(_ImportBinding(name, specifier, line))
    return bindings


def _without_imports(text: str) -> str:
    return re.sub(
        r"""^[ \t]*import\s+[^;'"]*?['"][^'"\n]+['"][ \t]*;?""",
        "",
        text,
        flags=re.MULTILINE,
    )


def resolve_import(
    importer: str, specifier: str, artifact_names: set[str]
) -> str | None:
    """Resolve a relative specifier to an artifact name, trying extensions and index files."""
    base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
    candidates = [base]
    candidates.extend(base + ext for ext in RESOLVABLE_EXTENSIONS)
    candidates.extend(posixpath.join(base, "index" + ext) for ext in RESOLVABLE_EXTENSIONS)
    for candidate in candidates:
        if candidate in artifact_names:
            return candidate
    return None


def _is_module(name: str) -> bool:
    return not name.lower().endswith(_NON_MODULE_EXTENSIONS)


def check_unused_imports(artifacts: Mapping[str, str]) -> list[ConsistencyIssue]:
    warnings: list[ConsistencyIssue] = []
    for name, text in artifacts.items():
        body = _without_imports(text)
        for binding in relative_imports(text):
            local = binding.local_name
            if not local:
                continue
            if local.startswith("use"):
                if not re.search(rf"\b{re.escape(local)}\s*\(", body):
                    warnings.append(
                        ConsistencyIssue(
                            name,
                            f'Hook "{local}" imported but never called',
                            "warning",
                            binding.line,
                            f"Remove unused import or call {local}()",
                        )
                    )
            elif not re.search(rf"(?<![\w$.]){re.escape(local)}(?![\w$])", body):
                warnings.append(
                    ConsistencyIssue(
                        name,
                        f'Component "{local}" imported but never used',
                        "warning",
                        binding.line,
                        f"Remove unused import or add <{local} /> to JSX",
                    )
                )
    return warnings


def check_duplicate_state(artifacts: Mapping[str, str]) -> list[ConsistencyIssue]:
    warnings: list[ConsistencyIssue] = []
    for name, text in artifacts.items():
        if posixpath.basename(name).startswith("use") or "useState(" not in text:
            continue
        imports_hook = any(
            b.local_name.startswith("use") for b in relative_imports(text)
        )
        if imports_hook:
            warnings.append(
                ConsistencyIssue(
                    name,
                    "Component imports custom hook but also manages state locally - possible duplicate logic",
                    "warning",
                    fix="Consider using the hook's state management instead of local useState",
                )
            )
    return warnings


def check_exports(
    artifacts: Mapping[str, str], entry_artifact: str
) -> list[ConsistencyIssue]:
    errors: list[ConsistencyIssue] = []
    for name, text in artifacts.items():
        if name == entry_artifact or not _is_module(name):
            continue
        if not _EXPORT_RE.search(text):
            errors.append(
                ConsistencyIssue(
                    name,
                    "File has no exports - will cause import errors",
                    "error",
                    fix="Add 'export default ComponentName' at the end",
                )
            )
    return errors


def import_graph(artifacts: Mapping[str, str]) -> dict[str, list[str]]:
    """Map each artifact to the artifacts it imports through relative paths."""
    names = set(artifacts)
    graph: dict[str, list[str]] = {}
    for name, text in artifacts.items():
        deps: list[str] = []
        for binding in relative_imports(text):
            target = resolve_import(name, binding.specifier, names)
            if target and target not in deps:
                deps.append(target)
        graph[name] = deps
    return graph


def find_cycles(graph: Mapping[str, list[str]]) -> list[list[str]]:
    """Return each elementary cycle reachable by DFS once, rotated to its smallest node."""
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()
    visiting: list[str] = []
    done: set[str] = set()

    def visit(node: str) -> None:
        visiting.append(node)
        for dep in graph.get(node, []):
            if dep in visiting:
                cycle = visiting[visiting.index(dep) :]
                pivot = cycle.index(min(cycle))
                key = tuple(cycle[pivot:] + cycle[:pivot])
                if key not in seen:
                    seen.add(key)
                    cycles.append(list(key))
            elif dep not in done:
                visit(dep)
        visiting.pop()
        done.add(node)

    for node in sorted(graph):
        if node not in done:
            visit(node)
    return cycles


def check_cycles(artifacts: Mapping[str, str]) -> list[ConsistencyIssue]:
    warnings: list[ConsistencyIssue] = []
    for cycle in find_cycles(import_graph(artifacts)):
        path = " -> ".join(cycle + [cycle[0]])
        warnings.append(
            ConsistencyIssue(
                cycle[0],
                f"Circular dependency detected: {path}",
                "warning",
                fix="Refactor to remove circular dependency",
            )
        )
    return warnings


def check_consistency(
    artifacts: Mapping[str, str], entry_artifact: str | None = None
) -> ConsistencyReport:
    """Run every cross-artifact check; content problems never raise."""
    entry = entry_artifact or settings.ENTRY_ARTIFACT_NAME
    report = ConsistencyReport()
    report.warnings.extend(check_unused_imports(artifacts))
    report.warnings.extend(check_duplicate_state(artifacts))
    report.errors.extend(check_exports(artifacts, entry))
    report.warnings.extend(check_cycles(artifacts))
    report.valid = not report.errors

    if report.errors or report.warnings:
        logger.info(
            f"Consistency check over {len(artifacts)} artifacts: "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
    return report
