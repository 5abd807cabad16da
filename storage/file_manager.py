# storage/file_manager.py
"""Directory-backed storage for named text artifacts."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping

import structlog

from config import settings

logger = structlog.get_logger(__name__)


class ArtifactStore:
    """Read and write artifacts addressed by their relative, '/'-separated names."""

    def __init__(
        self,
        root_dir: str = settings.ARTIFACT_DIR,
        extensions: tuple[str, ...] | None = None,
    ) -> None:
        self.root_dir = root_dir
        self.extensions = tuple(extensions or settings.ARTIFACT_EXTENSIONS)

    def _path_for(self, name: str) -> str:
        path = os.path.normpath(os.path.join(self.root_dir, *name.split("/")))
        root = os.path.normpath(self.root_dir)
        if os.path.commonpath([root, path]) != root:
            raise ValueError(f"Artifact name escapes the store: {name!r}")
        return path

    def load_all_sync(self) -> dict[str, str]:
        artifacts: dict[str, str] = {}
        if not os.path.isdir(self.root_dir):
            return artifacts
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            dirnames[:] = sorted(
                d for d in dirnames if not d.startswith(".") and d != "node_modules"
            )
            for filename in sorted(filenames):
                if not filename.endswith(self.extensions):
                    continue
                full_path = os.path.join(dirpath, filename)
                name = os.path.relpath(full_path, self.root_dir).replace(os.sep, "/")
                with open(full_path, encoding="utf-8") as f:
                    artifacts[name] = f.read()
        logger.info(f"Loaded {len(artifacts)} artifacts from '{self.root_dir}'.")
        return artifacts

    def save_all_sync(self, artifacts: Mapping[str, str]) -> list[str]:
        written: list[str] = []
        for name, text in artifacts.items():
            path = self._path_for(name)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
            written.append(path)
        logger.info(f"Wrote {len(written)} artifacts to '{self.root_dir}'.")
        return written

    async def load_all(self) -> dict[str, str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.load_all_sync)

    async def save_all(self, artifacts: Mapping[str, str]) -> list[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.save_all_sync, dict(artifacts))
