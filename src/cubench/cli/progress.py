"""cubench CLI progress display utilities.

Wraps Rich :class:`~rich.progress.Progress` into a sampling progress
observer so the CLI can show a bar while the sampler stays output-free.
"""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

# ---------------------------------------------------------------------------
# RichProgressObserver
# ---------------------------------------------------------------------------


class RichProgressObserver:
    """Sampling progress observer rendering a Rich progress bar.

    Use as a context manager; one instance per benchmark subject.

    Usage::

        with RichProgressObserver("sol_transfer") as observer:
            run_benchmark(subject, 100, observer=observer)

    Parameters
    ----------
    description:
        Label shown next to the bar.
    console:
        Rich console to use.  Defaults to stderr.
    """

    def __init__(self, description: str, console: Console | None = None) -> None:
        self.description = description
        self.console = console or Console(stderr=True)
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self._task: Optional[TaskID] = None

    def __enter__(self) -> RichProgressObserver:
        self._progress.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.stop()

    def on_progress(self, completed: int, total: int) -> None:
        if self._task is None:
            self._task = self._progress.add_task(self.description, total=total)
        self._progress.update(self._task, completed=completed, total=total)
