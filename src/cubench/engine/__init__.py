"""Execution engine boundary and the in-memory reference engine."""

from cubench.engine.memory import (
    SYSTEM_PROGRAM_ID,
    Account,
    InvocationContext,
    MemoryEngine,
    system_create_account,
    system_transfer,
)
from cubench.engine.protocol import (
    EngineError,
    ExecutionEngine,
    ExecutionOutcome,
    InnerInvocation,
    Instruction,
    Operation,
    ProgramError,
    SimulationOutcome,
    SnapshotCapable,
)

__all__ = [
    "Account",
    "EngineError",
    "ExecutionEngine",
    "ExecutionOutcome",
    "InnerInvocation",
    "Instruction",
    "InvocationContext",
    "MemoryEngine",
    "Operation",
    "ProgramError",
    "SYSTEM_PROGRAM_ID",
    "SimulationOutcome",
    "SnapshotCapable",
    "system_create_account",
    "system_transfer",
]
