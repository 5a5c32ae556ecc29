"""cubench: compute-unit benchmarking with percentile-based estimates.

Measures the compute units an operation consumes on an in-process
execution engine and summarises repeated committed runs into six
confidence levels for fee planning.
"""

from cubench.address import Address, Keypair
from cubench.address_book import AddressBook
from cubench.estimate import estimate, nearest_rank, rank_index
from cubench.exceptions import (
    BuildFailure,
    CuBenchError,
    DegenerateInput,
    ExecutionFailure,
    HarnessClosedError,
    HarnessStateError,
    SetupFailure,
)
from cubench.harness import ExecutionHarness, StateMode
from cubench.models import (
    BenchmarkDatabase,
    BenchmarkResult,
    BenchmarkType,
    ComputeUnitLevel,
    EngineSnapshot,
    ExecutionContext,
    ExecutionStats,
    PercentileEstimate,
    ProgramContext,
    SampleSet,
    WorkflowContext,
)
from cubench.runner import (
    BenchmarkRunner,
    RunnerConfig,
    benchmark_instruction,
    benchmark_transaction,
    run_benchmark,
)
from cubench.sampler import LoggingProgressObserver, ProgressObserver, StatisticalSampler
from cubench.subject import InstructionBenchmark, TransactionBenchmark
from cubench.version import __version__

__all__ = [
    "Address",
    "AddressBook",
    "BenchmarkDatabase",
    "BenchmarkResult",
    "BenchmarkRunner",
    "BenchmarkType",
    "BuildFailure",
    "ComputeUnitLevel",
    "CuBenchError",
    "DegenerateInput",
    "EngineSnapshot",
    "ExecutionContext",
    "ExecutionFailure",
    "ExecutionHarness",
    "ExecutionStats",
    "HarnessClosedError",
    "HarnessStateError",
    "InstructionBenchmark",
    "Keypair",
    "LoggingProgressObserver",
    "PercentileEstimate",
    "ProgramContext",
    "ProgressObserver",
    "RunnerConfig",
    "SampleSet",
    "SetupFailure",
    "StateMode",
    "StatisticalSampler",
    "TransactionBenchmark",
    "WorkflowContext",
    "__version__",
    "benchmark_instruction",
    "benchmark_transaction",
    "estimate",
    "nearest_rank",
    "rank_index",
    "run_benchmark",
]
