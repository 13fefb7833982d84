"""Progress reporting for synchronization runs.

The orchestrator never prints. It reports through a :class:`SyncProgress`
implementation: :class:`NullProgress` for library use and tests,
:class:`ConsoleSyncReporter` for the command line.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.status import Status

from abappretty.models import AbapInclude, AbapObject, IncludeOutcome, RunStatus

TICK = "[green]✓[/green]"

_STEP_LABELS = {
    "reading": "Reading...",
    "formatting": "Formatting...",
    "locking": "Locking...",
    "writing": "Writing...",
    "unlocked": "Unlocking...",
    "activating": "Activating...",
}


class SyncProgress(Protocol):
    """Callback interface for live progress of a run."""

    def run_started(self, total_objects: int) -> None: ...

    def object_started(self, obj: AbapObject) -> None: ...

    def object_expanded(self, obj: AbapObject, includes: list[AbapInclude]) -> None: ...

    def include_step(self, include: AbapInclude, step: str) -> None: ...

    def include_finished(self, include: AbapInclude, outcome: IncludeOutcome) -> None: ...

    def run_failed(self, status: RunStatus, error: BaseException) -> None: ...

    def run_finished(self, status: RunStatus) -> None: ...


class NullProgress:
    """Ignores all progress events."""

    def run_started(self, total_objects: int) -> None:
        pass

    def object_started(self, obj: AbapObject) -> None:
        pass

    def object_expanded(self, obj: AbapObject, includes: list[AbapInclude]) -> None:
        pass

    def include_step(self, include: AbapInclude, step: str) -> None:
        pass

    def include_finished(self, include: AbapInclude, outcome: IncludeOutcome) -> None:
        pass

    def run_failed(self, status: RunStatus, error: BaseException) -> None:
        pass

    def run_finished(self, status: RunStatus) -> None:
        pass


class ConsoleSyncReporter:
    """Rich console reporter: a spinner for the current step and one
    line per finished object and include.

    Usage::

        reporter = ConsoleSyncReporter(console)
        orchestrator = SourceSyncOrchestrator(client, formatter, progress=reporter)
    """

    def __init__(self, console: Console) -> None:
        self.console = console
        self._status: Status | None = None

    def _spin(self, message: str) -> None:
        if self._status is None:
            self._status = self.console.status(message)
            self._status.start()
        else:
            self._status.update(message)

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def run_started(self, total_objects: int) -> None:
        self.console.print(f"Processing {total_objects} objects")

    def object_started(self, obj: AbapObject) -> None:
        self._spin(f"{obj.type} {obj.name}")

    def object_expanded(self, obj: AbapObject, includes: list[AbapInclude]) -> None:
        self._stop()
        self.console.print(f"{TICK}{obj.type} {obj.name} [dim]({len(includes)} includes)[/dim]")

    def include_step(self, include: AbapInclude, step: str) -> None:
        label = _STEP_LABELS.get(step)
        if label:
            self._spin(f"\t{include.key} {label}")

    def include_finished(self, include: AbapInclude, outcome: IncludeOutcome) -> None:
        self._stop()
        if outcome is IncludeOutcome.UNCHANGED:
            self.console.print(f"\t{TICK}{include.key} [dim](unchanged)[/dim]")
        elif outcome is IncludeOutcome.GENERATED:
            self.console.print(f"\t{TICK}{include.key} [yellow]is generated, skipped[/yellow]")
        else:
            self.console.print(f"\t{TICK}{include.key}")

    def run_failed(self, status: RunStatus, error: BaseException) -> None:
        self._stop()
        self.console.print("[red]failed![/red]")
        obj = status.current_object
        if obj is not None:
            self.console.print(f"Last object {obj.type} {obj.name}")
        if status.current_include is not None:
            step = f" ({status.current_step})" if status.current_step else ""
            self.console.print(f"Last include {status.current_include.key}{step}")

    def run_finished(self, status: RunStatus) -> None:
        self._stop()
        self.console.print(f"\n[bold]{status.summary}[/bold]\n")
