"""Custom exceptions for the benchmarking pipeline.

Every failure is run-fatal: nothing is retried and no partial statistic is
ever returned.
"""

from __future__ import annotations

from typing import Optional


class CuBenchError(Exception):
    """Base exception for all benchmark run errors.

    Attributes:
        phase: Pipeline phase in which the failure happened
            (``"setup"``, ``"build"``, ``"simulate"``, ``"execute"``,
            ``"estimate"``).
        iteration: Zero-based sample index, when the failure happened
            inside the sampling loop.
    """

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        iteration: Optional[int] = None,
    ) -> None:
        self.message = message
        self.phase = phase
        self.iteration = iteration
        location = phase if iteration is None else f"{phase}, iteration {iteration}"
        super().__init__(f"[{location}] {message}")


class SetupFailure(CuBenchError):
    """Raised when the benchmark environment cannot be constructed.

    Examples: funding an account fails, the engine lacks a capability the
    requested state mode needs.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, phase="setup")


class BuildFailure(CuBenchError):
    """Raised when a subject cannot build or sign a valid operation."""


class ExecutionFailure(CuBenchError):
    """Raised when the engine rejects or errors on an operation."""


class DegenerateInput(CuBenchError, ValueError):
    """Raised when estimation is requested for fewer than one sample."""

    def __init__(self, message: str, *, phase: str = "estimate") -> None:
        super().__init__(message, phase=phase)


class HarnessStateError(CuBenchError):
    """Raised when harness entry points are called out of order."""


class HarnessClosedError(HarnessStateError):
    """Raised when a closed harness is used again."""

    def __init__(self, phase: str) -> None:
        super().__init__("harness is closed and its engine discarded", phase=phase)
