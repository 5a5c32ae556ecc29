"""Pydantic data models for benchmark results.

Defines the core data structures for:
- Sample sets collected by the sampler
- Six-level percentile estimates and the named confidence levels
- Execution context discovered by the diagnostic simulation
- Per-subject benchmark results and the cumulative estimate database

All documents serialise with sorted keys so that two runs against the same
deterministic subject produce byte-identical output.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator, model_validator

from cubench.version import GENERATED_BY

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ComputeUnitLevel(str, Enum):
    """Named confidence level of a CU estimate."""

    MIN = "min"
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    SAFE = "safe"
    VERY_HIGH = "very_high"
    UNSAFE_MAX = "unsafe_max"


LEVEL_PERCENTILES: dict[ComputeUnitLevel, int] = {
    ComputeUnitLevel.MIN: 0,
    ComputeUnitLevel.CONSERVATIVE: 25,
    ComputeUnitLevel.BALANCED: 50,
    ComputeUnitLevel.SAFE: 75,
    ComputeUnitLevel.VERY_HIGH: 95,
    ComputeUnitLevel.UNSAFE_MAX: 100,
}


class BenchmarkType(str, Enum):
    """Shape of the measured operation."""

    INSTRUCTION = "instruction"
    TRANSACTION = "transaction"


# ---------------------------------------------------------------------------
# Samples and estimates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SampleSet:
    """Ordered, immutable CU observations from one run."""

    values: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        values = tuple(self.values)
        for value in values:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"CU samples must be non-negative integers, got {value!r}")
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[int]:
        return iter(self.values)


class PercentileEstimate(BaseModel):
    """Six-level nearest-rank summary of a sample distribution.

    Validators enforce
    ``min <= conservative <= balanced <= safe <= very_high <= unsafe_max``.
    """

    model_config = ConfigDict(frozen=True)

    min: NonNegativeInt = Field(..., description="Minimum observed CU (p0)")
    conservative: NonNegativeInt = Field(..., description="25th percentile")
    balanced: NonNegativeInt = Field(..., description="50th percentile")
    safe: NonNegativeInt = Field(..., description="75th percentile")
    very_high: NonNegativeInt = Field(..., description="95th percentile")
    unsafe_max: NonNegativeInt = Field(..., description="Maximum observed CU (p100)")
    sample_size: int = Field(..., ge=1, description="Number of samples estimated from")

    @model_validator(mode="after")
    def validate_monotonic(self) -> PercentileEstimate:
        levels = [self.cu_for_level(level) for level in ComputeUnitLevel]
        if any(lower > upper for lower, upper in zip(levels, levels[1:])):
            raise ValueError(
                "Percentile levels must be non-decreasing, got "
                + ", ".join(f"{level.value}={value}" for level, value in zip(ComputeUnitLevel, levels))
            )
        return self

    def cu_for_level(self, level: ComputeUnitLevel | str) -> int:
        """Return the CU value for a named confidence level."""
        return getattr(self, ComputeUnitLevel(level).value)

    def scaled(self, multiplier: float) -> int:
        """Return the balanced estimate scaled by *multiplier* (truncated)."""
        if multiplier < 0:
            raise ValueError("multiplier must be non-negative")
        return int(self.balanced * multiplier)

    def spread_percent(self) -> int:
        """Spread between extremes as an integer percentage of ``balanced``."""
        if self.min == self.unsafe_max or self.balanced == 0:
            return 0
        return (self.unsafe_max - self.min) * 100 // self.balanced


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------


class EngineSnapshot(BaseModel):
    """Engine state observed while discovering context."""

    model_config = ConfigDict(frozen=True)

    slot: NonNegativeInt = Field(..., description="Current slot / sequence number")
    state_digest: str = Field(..., description="Latest sequencing token")


class ProgramContext(BaseModel):
    """The primary program an operation targets."""

    model_config = ConfigDict(frozen=True)

    target_id: str = Field(..., description="Base58 id of the first instruction's program")
    display_name: str = Field(..., description="Name resolved through the address book")
    nested_invocation_count: NonNegativeInt = Field(
        default=0,
        description="Nested invocations triggered during simulation",
    )


class ExecutionStats(BaseModel):
    """Diagnostic run output."""

    model_config = ConfigDict(frozen=True)

    logs: tuple[str, ...] = Field(default=(), description="Ordered log lines")
    simulated_cu: NonNegativeInt = Field(..., description="CU reported by the simulation")


class ProgramInvocationSummary(BaseModel):
    """How often one program ran inside a multi-step operation."""

    model_config = ConfigDict(frozen=True)

    program_id: str
    display_name: str
    invocation_count: NonNegativeInt


class WorkflowContext(BaseModel):
    """Programs involved in a multi-step operation."""

    model_config = ConfigDict(frozen=True)

    workflow_name: str
    involved_programs: tuple[ProgramInvocationSummary, ...] = ()
    invocation_sequence: tuple[str, ...] = ()
    total_nested_invocations: NonNegativeInt = 0


class ExecutionContext(BaseModel):
    """Everything the single diagnostic simulation revealed."""

    model_config = ConfigDict(frozen=True)

    engine_snapshot: EngineSnapshot
    program_context: ProgramContext
    execution_stats: ExecutionStats
    workflow_context: Optional[WorkflowContext] = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


_SUBJECT_NAME = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_.\-]*")


def check_subject_name(name: object) -> str:
    """Return *name* if it can key the database and name a result file.

    Names start with a letter, digit or underscore and otherwise contain
    only letters, digits, ``_``, ``.`` and ``-``; path separators and
    leading dots are rejected.

    Raises:
        ValueError: If *name* is missing, empty or unsafe.
    """
    if not isinstance(name, str) or not _SUBJECT_NAME.fullmatch(name):
        raise ValueError(
            f"subject name must match {_SUBJECT_NAME.pattern!r}, got {name!r}"
        )
    return name


def _dump_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


class BenchmarkResult(BaseModel):
    """Context plus estimate for one benchmark subject."""

    model_config = ConfigDict(frozen=True)

    subject_name: str = Field(..., min_length=1)
    benchmark_type: BenchmarkType = BenchmarkType.INSTRUCTION
    execution_context: ExecutionContext
    percentile_estimate: PercentileEstimate
    generated_by: str = GENERATED_BY

    @field_validator("subject_name")
    @classmethod
    def validate_subject_name(cls, value: str) -> str:
        return check_subject_name(value)

    def to_json(self) -> str:
        return _dump_json(self.model_dump(mode="json", exclude_none=True))

    @classmethod
    def from_json(cls, text: str) -> BenchmarkResult:
        return cls.model_validate_json(text)


class BenchmarkDatabase(BaseModel):
    """Cumulative mapping of subject name to :class:`BenchmarkResult`.

    This is the persisted artifact downstream fee estimation consumes.
    """

    model_config = ConfigDict(validate_assignment=True)

    generated_by: str = GENERATED_BY
    estimates: dict[str, BenchmarkResult] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_keys(self) -> BenchmarkDatabase:
        for key, result in self.estimates.items():
            if key != result.subject_name:
                raise ValueError(
                    f"Estimate key {key!r} does not match subject_name "
                    f"{result.subject_name!r}"
                )
        return self

    def insert(self, result: BenchmarkResult) -> None:
        """Insert *result*, replacing any earlier result of the same name."""
        if result.subject_name in self.estimates:
            logger.debug("Replacing estimate for %s", result.subject_name)
        self.estimates[result.subject_name] = result

    def get_estimate(self, subject_name: str) -> Optional[PercentileEstimate]:
        result = self.estimates.get(subject_name)
        return result.percentile_estimate if result is not None else None

    def get_cu_estimate(
        self,
        subject_name: str,
        level: ComputeUnitLevel | str = ComputeUnitLevel.BALANCED,
    ) -> Optional[int]:
        estimate = self.get_estimate(subject_name)
        return estimate.cu_for_level(level) if estimate is not None else None

    def names(self) -> list[str]:
        return sorted(self.estimates)

    def __len__(self) -> int:
        return len(self.estimates)

    def __contains__(self, subject_name: object) -> bool:
        return subject_name in self.estimates

    def to_json(self) -> str:
        return _dump_json(self.model_dump(mode="json", exclude_none=True))

    @classmethod
    def from_json(cls, text: str) -> BenchmarkDatabase:
        return cls.model_validate_json(text)

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.info("Saved %d estimate(s) to %s", len(self.estimates), path)
        return path

    @classmethod
    def load(cls, path: str | Path) -> BenchmarkDatabase:
        """Load a database file; a missing file yields an empty database."""
        path = Path(path)
        if not path.exists():
            return cls()
        return cls.from_json(path.read_text(encoding="utf-8"))
