"""Structured progress trace for release pipelines.

Each pipeline step is reported as it starts and as it ends, so the last
line an operator sees always names the step that failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from deploykit.output.console import ConsoleProtocol, Style

__all__ = ["StepStatus", "TraceEntry", "ProgressTrace"]


class StepStatus(Enum):
    STARTED = "started"
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TraceEntry:
    step: str
    status: StepStatus
    detail: str = ""

    def render(self) -> str:
        line = f"[{self.step}] {self.status.value}"
        if self.detail:
            line += f": {self.detail}"
        return line


@dataclass
class ProgressTrace:
    """Records and prints step transitions for one pipeline run."""

    console: ConsoleProtocol
    entries: list[TraceEntry] = field(default_factory=lambda: list[TraceEntry]())

    def start(self, step: str, detail: str = "") -> None:
        self._record(TraceEntry(step, StepStatus.STARTED, detail), Style.INFO)

    def ok(self, step: str, detail: str = "") -> None:
        self._record(TraceEntry(step, StepStatus.OK, detail), Style.SUCCESS)

    def fail(self, step: str, detail: str = "") -> None:
        self._record(TraceEntry(step, StepStatus.FAILED, detail), Style.ERROR)

    def _record(self, entry: TraceEntry, style: Style) -> None:
        self.entries.append(entry)
        self.console.print(entry.render(), style)

    @property
    def last_failed(self) -> str | None:
        """Name of the most recent failed step, if any."""
        for entry in reversed(self.entries):
            if entry.status is StepStatus.FAILED:
                return entry.step
        return None

    def statuses(self, step: str) -> list[StepStatus]:
        return [e.status for e in self.entries if e.step == step]
