"""Two-phase execution harness around one exclusively owned engine.

The harness exposes a non-committing :meth:`ExecutionHarness.simulate`
(exactly once, before sampling) and a committing
:meth:`ExecutionHarness.execute` (once per sample). Every attempt starts by
refreshing the engine's sequencing token so the engine never rejects a
sample as already processed.

State handling between samples is explicit, see :class:`StateMode`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from cubench.engine.protocol import (
    ExecutionEngine,
    ExecutionOutcome,
    Operation,
    SimulationOutcome,
    SnapshotCapable,
)
from cubench.exceptions import (
    BuildFailure,
    CuBenchError,
    ExecutionFailure,
    HarnessClosedError,
    HarnessStateError,
    SetupFailure,
)
from cubench.subject import OperationSource

logger = logging.getLogger(__name__)


class StateMode(str, Enum):
    """How engine state carries over between committed samples.

    ``ACCUMULATE`` keeps every committed effect, so later samples see the
    fees and storage changes of earlier ones. ``ISOLATE`` restores a
    baseline snapshot before each sample and needs a
    :class:`~cubench.engine.protocol.SnapshotCapable` engine.
    """

    ACCUMULATE = "accumulate"
    ISOLATE = "isolate"


class ExecutionHarness:
    """Owns one engine for the lifetime of a single benchmark run.

    Args:
        engine: The engine returned by the subject's environment setup.
        state_mode: Accumulation or isolation between samples.

    Raises:
        SetupFailure: If ``ISOLATE`` is requested for an engine without
            snapshot support.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        state_mode: StateMode = StateMode.ACCUMULATE,
    ) -> None:
        state_mode = StateMode(state_mode)
        if state_mode is StateMode.ISOLATE and not isinstance(engine, SnapshotCapable):
            raise SetupFailure(
                f"{type(engine).__name__} does not support snapshot/restore "
                "required by isolated sampling"
            )
        self._engine: Optional[ExecutionEngine] = engine
        self.state_mode = state_mode
        self._baseline: Any = None
        self.simulations = 0
        self.executions = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def engine(self) -> ExecutionEngine:
        if self._engine is None:
            raise HarnessClosedError(phase="engine")
        return self._engine

    @property
    def closed(self) -> bool:
        return self._engine is None

    def close(self) -> None:
        """Discard the engine. The harness cannot be used afterwards."""
        self._engine = None
        self._baseline = None

    def __enter__(self) -> ExecutionHarness:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def simulate(self, source: OperationSource) -> tuple[Operation, SimulationOutcome]:
        """Run the single diagnostic simulation.

        Returns:
            The simulated operation and the engine's outcome.

        Raises:
            HarnessStateError: On a second call or after sampling began.
            BuildFailure: If the subject cannot build or sign.
            ExecutionFailure: If the engine errors or reports an error.
        """
        if self._engine is None:
            raise HarnessClosedError(phase="simulate")
        if self.simulations or self.executions:
            raise HarnessStateError(
                "simulate must run exactly once, before any execute",
                phase="simulate",
            )
        operation = self._prepare(source, phase="simulate", iteration=None)
        try:
            outcome = self._engine.simulate(operation)
        except Exception as exc:
            raise ExecutionFailure(
                f"engine raised during simulation: {exc}", phase="simulate"
            ) from exc
        self.simulations += 1
        if outcome.error is not None:
            raise ExecutionFailure(
                f"simulation reported an error: {outcome.error}", phase="simulate"
            )
        logger.debug("Simulation consumed %d CU", outcome.consumed_cu)
        return operation, outcome

    def execute(self, source: OperationSource, iteration: int) -> ExecutionOutcome:
        """Run one committed sample.

        Raises:
            BuildFailure: If the subject cannot build or sign.
            ExecutionFailure: If the engine errors or rejects the operation.
        """
        if self._engine is None:
            raise HarnessClosedError(phase="execute")
        self._apply_state_mode()
        operation = self._prepare(source, phase="execute", iteration=iteration)
        try:
            outcome = self._engine.execute(operation)
        except Exception as exc:
            raise ExecutionFailure(
                f"engine raised during execution: {exc}",
                phase="execute",
                iteration=iteration,
            ) from exc
        self.executions += 1
        if outcome.error is not None:
            raise ExecutionFailure(
                f"engine rejected the operation: {outcome.error}",
                phase="execute",
                iteration=iteration,
            )
        return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_state_mode(self) -> None:
        if self.state_mode is not StateMode.ISOLATE:
            return
        if self._baseline is None:
            self._baseline = self._engine.snapshot()
        else:
            self._engine.restore(self._baseline)

    def _prepare(
        self,
        source: OperationSource,
        phase: str,
        iteration: Optional[int],
    ) -> Operation:
        token = self._engine.refresh_sequencing_token()
        try:
            return source.next_operation(self._engine, token)
        except CuBenchError:
            raise
        except Exception as exc:
            raise BuildFailure(
                f"subject {source.subject.name!r} failed to build or sign during "
                f"{phase}: {exc}",
                phase="build",
                iteration=iteration,
            ) from exc
