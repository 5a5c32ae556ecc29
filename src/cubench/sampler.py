"""Statistical sampler: N committed executions, one CU observation each."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from cubench.exceptions import DegenerateInput
from cubench.harness import ExecutionHarness
from cubench.models import SampleSet
from cubench.subject import OperationSource

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_STEP_PERCENT = 10


# ---------------------------------------------------------------------------
# Progress observers
# ---------------------------------------------------------------------------


class ProgressObserver(Protocol):
    """Side channel for coarse sampling progress.

    Observers see progress only; they cannot influence the samples.
    """

    def on_progress(self, completed: int, total: int) -> None: ...


class LoggingProgressObserver:
    """Logs progress through the ``cubench.sampler`` logger."""

    def on_progress(self, completed: int, total: int) -> None:
        logger.info("Completed %d/%d measurements", completed, total)


class NullProgressObserver:
    """Discards progress notifications."""

    def on_progress(self, completed: int, total: int) -> None:
        return None


def progress_interval(total: int, step_percent: int) -> int:
    """Samples between notifications: ``ceil(total * step / 100)``, at least 1."""
    return max(1, -(-total * step_percent // 100))


# ---------------------------------------------------------------------------
# StatisticalSampler
# ---------------------------------------------------------------------------


class StatisticalSampler:
    """Collects exactly ``sample_size`` committed CU observations.

    The first failure aborts collection; earlier observations are dropped
    because a truncated set would bias every percentile.

    Args:
        harness: Harness owning the run's engine.
        source: Produces the operation for each attempt.
        observer: Progress side channel. Defaults to logging.
        progress_step_percent: Notification granularity, in percent of the
            requested sample size.
    """

    def __init__(
        self,
        harness: ExecutionHarness,
        source: OperationSource,
        observer: Optional[ProgressObserver] = None,
        progress_step_percent: int = DEFAULT_PROGRESS_STEP_PERCENT,
    ) -> None:
        if not 1 <= progress_step_percent <= 100:
            raise ValueError("progress_step_percent must be within [1, 100]")
        self.harness = harness
        self.source = source
        self.observer = observer if observer is not None else LoggingProgressObserver()
        self.progress_step_percent = progress_step_percent

    def collect(self, sample_size: int) -> SampleSet:
        """Run ``sample_size`` committed executions.

        Raises:
            DegenerateInput: If ``sample_size < 1``; nothing is executed.
            BuildFailure: If the subject fails to build or sign.
            ExecutionFailure: If any execution fails.
        """
        if sample_size < 1:
            raise DegenerateInput(
                f"sample_size must be at least 1, got {sample_size}", phase="execute"
            )

        interval = progress_interval(sample_size, self.progress_step_percent)
        observations: list[int] = []
        for iteration in range(sample_size):
            outcome = self.harness.execute(self.source, iteration)
            observations.append(outcome.consumed_cu)

            completed = iteration + 1
            if completed % interval == 0 or completed == sample_size:
                self.observer.on_progress(completed, sample_size)

        return SampleSet(values=tuple(observations))
