import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock

import main
import pytest
from config import settings
from core.llm_interface import llm_service
from storage.file_manager import ArtifactStore

from orchestration import cli_runner
from orchestration.models import ProgressEvent, RunResult


def test_main_passes_arguments_and_exit_code(monkeypatch):
    calls = []

    def fake_run(message, artifact_dir, out_dir, log_level):
        calls.append((message, artifact_dir, out_dir, log_level))
        return 1

    monkeypatch.setattr(main, "run", fake_run)
    monkeypatch.setattr(
        sys,
        "argv",
        ["prog", "fix the crash", "--dir", "src", "--out", "build", "--log-level", "debug"],
    )

    with pytest.raises(SystemExit) as excinfo:
        main.main()

    assert excinfo.value.code == 1
    assert calls == [("fix the crash", "src", "build", "DEBUG")]


@pytest.mark.asyncio
async def test_runner_loads_runs_and_saves(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    monkeypatch.setattr(llm_service, "aclose", AsyncMock())
    source = ArtifactStore(str(tmp_path / "src"))
    source.save_all_sync({"App.jsx": "export default function App() {}\n"})
    target = ArtifactStore(str(tmp_path / "out"))

    async def fake_run(message, existing, on_progress=None):
        on_progress(ProgressEvent("agent", "Analyzer: Analyzing codebase..."))
        assert existing == {"App.jsx": "export default function App() {}\n"}
        return RunResult(success=True, artifacts={"App.jsx": "export default 1;\n"})

    orchestrator = SimpleNamespace(run=fake_run, get_metrics=lambda: {"total_tokens": 0})

    result = await cli_runner._run(orchestrator, "update the app", source, target)

    assert result.success
    assert target.load_all_sync() == {"App.jsx": "export default 1;\n"}
    llm_service.aclose.assert_awaited_once()


def test_run_returns_failure_exit_code(monkeypatch, tmp_path):
    monkeypatch.setattr(cli_runner, "setup_logging_forge", lambda level=None: None)
    monkeypatch.setattr(cli_runner, "ForgeOrchestrator", lambda: object())

    async def fake_inner(orchestrator, message, source, target):
        return RunResult(success=False, error="boom")

    monkeypatch.setattr(cli_runner, "_run", fake_inner)

    assert cli_runner.run("make an app", str(tmp_path)) == 1


def test_run_handles_keyboard_interrupt(monkeypatch, tmp_path):
    monkeypatch.setattr(cli_runner, "setup_logging_forge", lambda level=None: None)
    monkeypatch.setattr(cli_runner, "ForgeOrchestrator", lambda: object())

    async def interrupted(*_args):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli_runner, "_run", interrupted)

    assert cli_runner.run("make an app", str(tmp_path)) == 130


def test_run_forwards_log_level(monkeypatch, tmp_path):
    levels = []
    monkeypatch.setattr(cli_runner, "setup_logging_forge", levels.append)
    monkeypatch.setattr(cli_runner, "ForgeOrchestrator", lambda: object())

    async def fake_inner(orchestrator, message, source, target):
        return RunResult(success=True)

    monkeypatch.setattr(cli_runner, "_run", fake_inner)

    assert cli_runner.run("make an app", str(tmp_path), log_level="WARNING") == 0
    assert levels == ["WARNING"]
