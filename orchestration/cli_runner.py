# orchestration/cli_runner.py
"""Command-line runner for the FORGE orchestrator."""

from __future__ import annotations

import asyncio

import structlog
from core.llm_interface import llm_service
from storage.file_manager import ArtifactStore
from ui.rich_display import RichDisplayManager
from utils.logging import setup_logging_forge

from orchestration.forge_orchestrator import ForgeOrchestrator
from orchestration.models import ProgressEvent, RunResult

logger = structlog.get_logger(__name__)


async def _run(
    orchestrator: ForgeOrchestrator,
    message: str,
    source: ArtifactStore,
    target: ArtifactStore,
) -> RunResult:
    existing = await source.load_all()
    display = RichDisplayManager()
    tokens_before = orchestrator.get_metrics()["total_tokens"]

    def on_progress(event: ProgressEvent) -> None:
        display.handle_event(event)
        display.update(
            total_tokens=orchestrator.get_metrics()["total_tokens"] - tokens_before
        )

    display.start(message)
    try:
        result = await orchestrator.run(message, existing, on_progress=on_progress)
    finally:
        await display.stop()
        await llm_service.aclose()

    if result.artifacts:
        await target.save_all(result.artifacts)
    return result


def _report(result: RunResult) -> None:
    if result.explanation:
        print(result.explanation)
    for warning in result.warnings:
        logger.warning(f"FORGE warning: {warning}")
    if result.success:
        logger.info(
            f"FORGE produced {len(result.artifacts)} artifact(s): {sorted(result.artifacts)}",
            **{k: v for k, v in result.metadata.items() if k != "stages"},
        )
    else:
        detail = result.error_detail
        logger.error(
            f"FORGE run failed: {result.error}",
            stage=detail.stage.value if detail and detail.stage else None,
            artifact=detail.artifact if detail else None,
            kind=detail.kind.value if detail else None,
        )


def run(
    message: str,
    artifact_dir: str | None = None,
    out_dir: str | None = None,
    log_level: str | None = None,
) -> int:
    """Run one request against the artifacts in ``artifact_dir``.

    Results are written to ``out_dir`` (defaults to ``artifact_dir``).
    ``log_level`` overrides ``FORGE_LOG_LEVEL``. Returns a process exit code.
    """
    setup_logging_forge(log_level)
    source = ArtifactStore(artifact_dir) if artifact_dir else ArtifactStore()
    target = ArtifactStore(out_dir) if out_dir else source
    orchestrator = ForgeOrchestrator()
    try:
        result = asyncio.run(_run(orchestrator, message, source, target))
    except KeyboardInterrupt:
        logger.info("FORGE Orchestrator shutting down gracefully due to KeyboardInterrupt...")
        return 130
    except Exception as main_err:  # pragma: no cover - entry point catch
        logger.critical(
            "FORGE Orchestrator encountered an unhandled main exception: %s",
            main_err,
            exc_info=True,
        )
        return 1
    _report(result)
    return 0 if result.success else 1
