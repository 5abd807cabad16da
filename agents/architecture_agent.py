# agents/architecture_agent.py
import posixpath
import re
from collections.abc import Iterable, Mapping

import structlog
from config import settings
from core.llm_interface import build_request, llm_service
from core.usage import TokenUsage
from parsing import parse_llm_json
from prompt_renderer import render_stage_prompts

from models import ArchitectureDesign, FileStructureEntry, ProjectPlan

logger = structlog.get_logger(__name__)

_IMPORT_FROM_RE = re.compile(r"""import\s+.*?\s+from\s+['"](.+?)['"]""")
_COMPONENT_EXTENSIONS = (".jsx", ".tsx")
_DEFAULT_FOLDERS = {"component": "components/", "hook": "hooks/", "util": "lib/"}


def file_type(name: str) -> str:
    """Classify an artifact as ``component``, ``hook`` or ``util`` by its name."""
    if name.endswith(_COMPONENT_EXTENSIONS):
        return "component"
    if name.startswith("use") or "/use" in name:
        return "hook"
    return "util"


def _folder_of(name: str) -> str:
    folder = posixpath.dirname(name)
    return f"{folder}/" if folder else "root"


def infer_architecture_from_code(artifacts: Mapping[str, str]) -> ArchitectureDesign:
    """Read folder layout and import relationships off existing artifacts."""
    file_structure: dict[str, FileStructureEntry] = {}
    import_paths: dict[str, str] = {}
    dependencies: dict[str, list[str]] = {}
    folders: set[str] = set()

    for name, text in artifacts.items():
        folder = _folder_of(name)
        if folder != "root":
            folders.add(folder)
        imports = _IMPORT_FROM_RE.findall(text)
        file_structure[name] = FileStructureEntry(
            folder=folder, purpose=f"Existing {file_type(name)}", imports=imports
        )
        for specifier in imports:
            import_paths[f"{name} -> {specifier}"] = specifier
        dependencies[name] = imports

    return ArchitectureDesign(
        file_structure=file_structure,
        import_paths=import_paths,
        folder_purposes={f: f"Existing {f} folder" for f in sorted(folders)},
        dependencies=dependencies,
        mode="inferred",
    )


def default_architecture(file_names: Iterable[str]) -> ArchitectureDesign:
    """Conventional components/hooks/lib layout for ``file_names``."""
    names = list(file_names)
    entry = settings.ENTRY_ARTIFACT_NAME
    file_structure: dict[str, FileStructureEntry] = {}
    import_paths: dict[str, str] = {}

    for name in names:
        kind = file_type(name)
        if name == entry:
            folder = "root"
        elif posixpath.dirname(name):
            folder = _folder_of(name)
        else:
            folder = _DEFAULT_FOLDERS[kind]
        file_structure[name] = FileStructureEntry(
            folder=folder, purpose=f"{kind.capitalize()} file"
        )

    if entry in names:
        for name in names:
            kind = file_type(name)
            if name == entry or kind == "util":
                continue
            stem = posixpath.splitext(posixpath.basename(name))[0]
            import_paths[f"{entry} -> {stem}"] = f"./{_DEFAULT_FOLDERS[kind]}{stem}"

    return ArchitectureDesign(
        file_structure=file_structure,
        import_paths=import_paths,
        folder_purposes={
            "components/": "UI components",
            "hooks/": "Custom React hooks",
            "lib/": "Utility functions",
        },
        dependencies={name: [] for name in names},
        mode="fallback",
        is_fallback=True,
    )


class ArchitectureAgent:
    """Lays out folders and import paths for the planned files."""

    def __init__(self, model_name: str = settings.DESIGNER_MODEL):
        self.model_name = model_name
        logger.info(f"ArchitectureAgent initialized with model: {self.model_name}")

    async def design(self, plan: ProjectPlan) -> tuple[ArchitectureDesign, TokenUsage]:
        system_prompt, user_prompt = render_stage_prompts(
            "architecture_agent",
            {
                "file_names": plan.planned_files(),
                "entry_artifact": settings.ENTRY_ARTIFACT_NAME,
            },
        )
        response = await llm_service.complete(
            build_request(
                self.model_name,
                system_prompt,
                user_prompt,
                settings.MAX_TOKENS_DESIGN,
                settings.TEMPERATURE_ARCHITECTURE,
            )
        )
        architecture = ArchitectureDesign.model_validate(parse_llm_json(response.text))
        architecture.mode = "create_new"
        logger.info(
            f"Architecture ready: {len(architecture.file_structure)} files in "
            f"{len(architecture.folder_purposes)} folders"
        )
        return architecture, response.usage
