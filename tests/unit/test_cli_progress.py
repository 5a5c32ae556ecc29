"""Unit tests for cubench.cli.progress."""

from __future__ import annotations

from rich.console import Console

from cubench.cli.progress import RichProgressObserver


def _console() -> Console:
    return Console(stderr=True, force_terminal=False)


class TestRichProgressObserver:
    def test_default_console(self) -> None:
        observer = RichProgressObserver("system_transfer")
        assert observer.console is not None

    def test_custom_console(self) -> None:
        console = _console()
        observer = RichProgressObserver("system_transfer", console=console)
        assert observer.console is console

    def test_task_created_lazily(self) -> None:
        with RichProgressObserver("system_transfer", console=_console()) as observer:
            assert observer._progress.tasks == []
            observer.on_progress(10, 100)
            assert len(observer._progress.tasks) == 1

    def test_updates_same_task(self) -> None:
        with RichProgressObserver("system_transfer", console=_console()) as observer:
            observer.on_progress(10, 100)
            observer.on_progress(100, 100)
            task = observer._progress.tasks[0]
            assert task.completed == 100
            assert task.total == 100
            assert task.description == "system_transfer"
