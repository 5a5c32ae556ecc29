"""Execution context discovered through the one diagnostic simulation.

The context is attached verbatim to the result and never feeds the
percentile computation: the simulated CU and the committed samples are
reported side by side because a dry run and a committed run can diverge.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from cubench.address_book import AddressBook
from cubench.engine.protocol import Operation, SimulationOutcome
from cubench.harness import ExecutionHarness
from cubench.models import (
    EngineSnapshot,
    ExecutionContext,
    ExecutionStats,
    ProgramContext,
    ProgramInvocationSummary,
    WorkflowContext,
)
from cubench.subject import OperationSource

logger = logging.getLogger(__name__)


def discover_context(
    harness: ExecutionHarness,
    source: OperationSource,
    address_book: AddressBook,
    workflow_name: Optional[str] = None,
) -> ExecutionContext:
    """Simulate once and capture engine, program and execution details.

    Args:
        harness: Harness owning the run's engine. Its single simulation is
            spent here.
        source: Produces the operation to simulate.
        address_book: Resolves program ids to display names.
        workflow_name: When given, a :class:`WorkflowContext` covering every
            program the operation touched is attached as well.

    Returns:
        A frozen :class:`ExecutionContext`.
    """
    operation, simulation = harness.simulate(source)
    engine = harness.engine

    context = ExecutionContext(
        engine_snapshot=EngineSnapshot(
            slot=engine.slot,
            state_digest=engine.latest_sequencing_token(),
        ),
        program_context=extract_program_context(operation, simulation, address_book),
        execution_stats=ExecutionStats(
            logs=tuple(simulation.logs),
            simulated_cu=simulation.consumed_cu,
        ),
        workflow_context=(
            extract_workflow_context(operation, simulation, address_book, workflow_name)
            if workflow_name is not None
            else None
        ),
    )
    logger.info(
        "Discovered context: target=%s nested=%d simulated_cu=%d",
        context.program_context.display_name,
        context.program_context.nested_invocation_count,
        context.execution_stats.simulated_cu,
    )
    return context


def extract_program_context(
    operation: Operation,
    simulation: SimulationOutcome,
    address_book: AddressBook,
) -> ProgramContext:
    target = operation.instructions[0].program_id
    return ProgramContext(
        target_id=str(target),
        display_name=address_book.lookup(target),
        nested_invocation_count=len(simulation.inner_invocations),
    )


def extract_workflow_context(
    operation: Operation,
    simulation: SimulationOutcome,
    address_book: AddressBook,
    workflow_name: str,
) -> WorkflowContext:
    usage: Counter = Counter()
    sequence: list[str] = []

    # Top-level instructions in order, each followed by the nested calls it made.
    nested_by_index: dict[int, list] = {}
    for inner in simulation.inner_invocations:
        nested_by_index.setdefault(inner.instruction_index, []).append(inner)

    for index, instruction in enumerate(operation.instructions):
        usage[instruction.program_id] += 1
        sequence.append(address_book.lookup(instruction.program_id))
        for inner in nested_by_index.get(index, []):
            usage[inner.program_id] += 1
            sequence.append(f"{address_book.lookup(inner.program_id)}_nested")

    involved = [
        ProgramInvocationSummary(
            program_id=str(program_id),
            display_name=address_book.lookup(program_id),
            invocation_count=count,
        )
        for program_id, count in usage.items()
    ]
    involved.sort(key=lambda summary: summary.program_id)

    return WorkflowContext(
        workflow_name=workflow_name,
        involved_programs=tuple(involved),
        invocation_sequence=tuple(sequence),
        total_nested_invocations=len(simulation.inner_invocations),
    )
