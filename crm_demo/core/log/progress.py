"""Rich progress bar for a generation job driven by repeated invocations."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


class GenerationProgress:
    """One bar per job: percent complete, current step and invocation count."""

    def __init__(self, progress: Progress, task_id: TaskID) -> None:
        self._progress = progress
        self._task_id = task_id
        self.invocations = 0

    @property
    def task(self) -> Task:
        return next(task for task in self._progress.tasks if task.id == self._task_id)

    def show(self, percent: int, step: Optional[str] = None) -> None:
        """Record the outcome of one start/continue call."""

        self.invocations += 1
        self._progress.update(
            self._task_id,
            completed=percent,
            description=step or "Generating",
            invocations=self.invocations,
        )


class ProgressManager:
    """Progress bars that share the logging console so log lines render above them."""

    def __init__(self) -> None:
        self._console: Console = Console(stderr=True)

    def use_console(self, console: Console) -> None:
        self._console = console

    def reset_console(self) -> None:
        self._console = Console(stderr=True)

    @contextmanager
    def generation(self, job_id: int) -> Iterator[GenerationProgress]:
        progress = Progress(
            TextColumn("job {task.fields[job_id]}"),
            TextColumn("[bold blue]{task.description}[/]"),
            BarColumn(bar_width=None),
            TaskProgressColumn(),
            TextColumn("{task.fields[invocations]} calls"),
            TimeElapsedColumn(),
            console=self._console,
            transient=True,
        )
        with progress:
            task_id = progress.add_task("Queued", total=100, job_id=job_id, invocations=0)
            yield GenerationProgress(progress, task_id)


progress_manager = ProgressManager()
