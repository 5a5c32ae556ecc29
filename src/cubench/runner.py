"""End-to-end benchmark runner.

Orchestrates the full flow of:
1. Building the subject's environment (exactly once)
2. Discovering execution context through one simulation
3. Collecting ``samples`` committed CU observations
4. Estimating the six confidence levels
5. Assembling a :class:`BenchmarkResult`

Usage::

    result = benchmark_instruction(SolTransfer(), samples=100)
    print(result.percentile_estimate.balanced)

Or for many subjects, accumulating a database::

    runner = BenchmarkRunner(RunnerConfig(output_dir="cu-bench"))
    database = runner.run_many([SolTransfer(), TokenSetup()])
    runner.save(database)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from cubench.context import discover_context
from cubench.estimate import estimate
from cubench.exceptions import BuildFailure, CuBenchError, DegenerateInput, SetupFailure
from cubench.harness import ExecutionHarness, StateMode
from cubench.models import (
    BenchmarkDatabase,
    BenchmarkResult,
    BenchmarkType,
    check_subject_name,
)
from cubench.sampler import DEFAULT_PROGRESS_STEP_PERCENT, ProgressObserver, StatisticalSampler
from cubench.subject import (
    BenchmarkSubject,
    InstructionBenchmark,
    TransactionBenchmark,
    operation_source_for,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Single run
# ---------------------------------------------------------------------------


def run_benchmark(
    subject: BenchmarkSubject,
    samples: int,
    *,
    observer: Optional[ProgressObserver] = None,
    state_mode: StateMode = StateMode.ACCUMULATE,
    progress_step_percent: int = DEFAULT_PROGRESS_STEP_PERCENT,
) -> BenchmarkResult:
    """Benchmark one subject in its own freshly built engine.

    Args:
        subject: An :class:`InstructionBenchmark` or
            :class:`TransactionBenchmark`.
        samples: Number of committed executions (>= 1; >= 100 recommended
            for stable percentiles).
        observer: Optional progress side channel.
        state_mode: Whether samples accumulate state or start from the
            same baseline.
        progress_step_percent: Progress notification granularity.

    Returns:
        The assembled :class:`BenchmarkResult`.

    Raises:
        DegenerateInput: ``samples < 1``; the environment is never built.
        SetupFailure: Environment construction failed.
        BuildFailure: The subject has no usable name (nothing is built), or
            could not build or sign an operation.
        ExecutionFailure: The engine failed on the simulation or a sample.
    """
    if samples < 1:
        raise DegenerateInput(f"samples must be at least 1, got {samples}", phase="setup")
    try:
        check_subject_name(getattr(subject, "name", None))
    except ValueError as exc:
        raise BuildFailure(
            f"{type(subject).__name__} has no usable name: {exc}", phase="build"
        ) from exc

    source = operation_source_for(subject)
    logger.info(
        "Benchmarking %s %s (%d samples, %s)",
        subject.benchmark_type.value,
        subject.name,
        samples,
        StateMode(state_mode).value,
    )
    start_time = time.monotonic()

    try:
        engine = subject.setup_environment()
    except CuBenchError:
        raise
    except Exception as exc:
        raise SetupFailure(
            f"environment setup for {subject.name!r} failed: {exc}"
        ) from exc

    with ExecutionHarness(engine, state_mode=state_mode) as harness:
        workflow_name = subject.name if subject.benchmark_type is BenchmarkType.TRANSACTION else None
        execution_context = discover_context(
            harness, source, subject.address_book(), workflow_name=workflow_name
        )
        sampler = StatisticalSampler(
            harness,
            source,
            observer=observer,
            progress_step_percent=progress_step_percent,
        )
        sample_set = sampler.collect(samples)

    percentile_estimate = estimate(sample_set)
    result = BenchmarkResult(
        subject_name=subject.name,
        benchmark_type=subject.benchmark_type,
        execution_context=execution_context,
        percentile_estimate=percentile_estimate,
    )

    logger.info(
        "Measured %d samples of %s: balanced=%d CU, simulated=%d CU (%d%% spread, %.2fs)",
        percentile_estimate.sample_size,
        subject.name,
        percentile_estimate.balanced,
        execution_context.execution_stats.simulated_cu,
        percentile_estimate.spread_percent(),
        time.monotonic() - start_time,
    )
    return result


def benchmark_instruction(
    subject: InstructionBenchmark,
    samples: int,
    **kwargs,
) -> BenchmarkResult:
    """Benchmark a single-instruction subject."""
    if not isinstance(subject, InstructionBenchmark):
        raise TypeError(f"{type(subject).__name__} is not an InstructionBenchmark")
    return run_benchmark(subject, samples, **kwargs)


def benchmark_transaction(
    subject: TransactionBenchmark,
    samples: int,
    **kwargs,
) -> BenchmarkResult:
    """Benchmark a multi-instruction subject."""
    if not isinstance(subject, TransactionBenchmark):
        raise TypeError(f"{type(subject).__name__} is not a TransactionBenchmark")
    return run_benchmark(subject, samples, **kwargs)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class RunnerConfig:
    """Configuration for the benchmark runner.

    Attributes:
        samples: Committed executions per subject.
        state_mode: Accumulation or isolation between samples.
        progress_step_percent: Progress notification granularity.
        output_dir: Directory for per-subject result documents.
        database_file: Cumulative estimate database path.
        save_individual: Whether to write per-subject documents.
    """

    samples: int = 100
    state_mode: StateMode = StateMode.ACCUMULATE
    progress_step_percent: int = DEFAULT_PROGRESS_STEP_PERCENT
    output_dir: str = "cu-bench"
    database_file: str = "cu-bench/cu_estimates.json"
    save_individual: bool = True


# ---------------------------------------------------------------------------
# BenchmarkRunner
# ---------------------------------------------------------------------------


@dataclass
class RunnerOutput:
    """Results of a multi-subject run and the files written for it."""

    database: BenchmarkDatabase
    written: list[Path] = field(default_factory=list)


class BenchmarkRunner:
    """Runs many subjects sequentially, each in an isolated engine.

    Every failure is fatal: the first failing subject aborts the batch.

    Args:
        config: Runner configuration.
        observer_factory: Called with each subject to produce its progress
            observer. ``None`` means the sampler's logging default.
    """

    def __init__(
        self,
        config: RunnerConfig | None = None,
        observer_factory: Optional[Callable[[BenchmarkSubject], ProgressObserver]] = None,
    ) -> None:
        self.config = config or RunnerConfig()
        self.observer_factory = observer_factory

    def run(
        self,
        subject: BenchmarkSubject,
        observer: Optional[ProgressObserver] = None,
    ) -> BenchmarkResult:
        """Benchmark one subject; *observer* overrides the factory."""
        if observer is None and self.observer_factory is not None:
            observer = self.observer_factory(subject)
        return run_benchmark(
            subject,
            self.config.samples,
            observer=observer,
            state_mode=self.config.state_mode,
            progress_step_percent=self.config.progress_step_percent,
        )

    def run_many(
        self,
        subjects: Iterable[BenchmarkSubject],
        database: BenchmarkDatabase | None = None,
    ) -> BenchmarkDatabase:
        """Benchmark *subjects* in order and insert each result into *database*."""
        database = database if database is not None else BenchmarkDatabase()
        for subject in subjects:
            database.insert(self.run(subject))
        return database

    def save(
        self,
        database: BenchmarkDatabase,
        names: Iterable[str] | None = None,
    ) -> RunnerOutput:
        """Write per-subject documents (for *names*, default all) and the database."""
        output = RunnerOutput(database=database)
        if self.config.save_individual:
            output_dir = Path(self.config.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            for name in names if names is not None else database.names():
                path = output_dir / f"{check_subject_name(name)}.json"
                path.write_text(database.estimates[name].to_json(), encoding="utf-8")
                logger.info("Saved result to %s", path)
                output.written.append(path)
        output.written.append(database.save(self.config.database_file))
        return output
