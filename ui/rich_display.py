# ui/rich_display.py
from __future__ import annotations

import asyncio
import time

from config import settings
from core.llm_interface import llm_service
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from orchestration.models import ProgressEvent


class RichDisplayManager:
    """Live panel showing the progress of one FORGE run."""

    def __init__(self) -> None:
        self.live: Live | None = None
        self.group: Group | None = None
        self.status_text_request: Text = Text("Request: N/A")
        self.status_text_current_stage: Text = Text("Current Stage: Initializing...")
        self.status_text_last_event: Text = Text("Last Event: N/A")
        self.status_text_tokens_generated: Text = Text("Tokens Generated (this run): 0")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 0s")
        self.status_text_requests_per_minute: Text = Text("Requests/Min: 0.0")
        self.run_start_time: float = 0.0
        self._requests_at_start = 0
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: asyncio.Task | None = None

        if settings.ENABLE_RICH_PROGRESS:
            self.group = Group(
                self.status_text_request,
                self.status_text_current_stage,
                self.status_text_last_event,
                self.status_text_tokens_generated,
                self.status_text_requests_per_minute,
                self.status_text_elapsed_time,
            )
            self.live = Live(
                Panel(
                    self.group,
                    title="FORGE Progress",
                    border_style="blue",
                    expand=True,
                ),
                refresh_per_second=4,
                transient=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def start(self, message: str = "") -> None:
        self.run_start_time = time.time()
        self._requests_at_start = llm_service.request_count
        if message:
            self.status_text_request.plain = f"Request: {message[:80]}"
        if self.live:
            self.live.start()
            self._stop_event.clear()
            self._task = asyncio.create_task(self._auto_refresh())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        if self.live and self.live.is_started:
            self.live.stop()

    async def _auto_refresh(self) -> None:
        while not self._stop_event.is_set():
            self.update()
            await asyncio.sleep(1)

    def handle_event(self, event: ProgressEvent) -> None:
        """Progress callback for ``ForgeOrchestrator.run``."""
        if event.type in ("agent", "pipeline"):
            self.update(stage=event.message)
        else:
            self.update(last_event=f"[{event.type}] {event.message}")

    def update(
        self,
        stage: str | None = None,
        last_event: str | None = None,
        total_tokens: int | None = None,
    ) -> None:
        if not (self.live and self.group):
            return
        if stage is not None:
            self.status_text_current_stage.plain = f"Current Stage: {stage}"
        if last_event is not None:
            self.status_text_last_event.plain = f"Last Event: {last_event}"
        if total_tokens is not None:
            self.status_text_tokens_generated.plain = (
                f"Tokens Generated (this run): {total_tokens:,}"
            )
        elapsed_seconds = time.time() - self.run_start_time
        requests = llm_service.request_count - self._requests_at_start
        requests_per_minute = (
            requests / (elapsed_seconds / 60) if elapsed_seconds > 0 else 0.0
        )
        self.status_text_requests_per_minute.plain = (
            f"Requests/Min: {requests_per_minute:.2f}"
        )
        self.status_text_elapsed_time.plain = (
            f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
        )
