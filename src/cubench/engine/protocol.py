"""Boundary types and protocols for the external execution engine.

The pipeline never reaches past these definitions: any engine that
implements :class:`ExecutionEngine` can be benchmarked.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Protocol, runtime_checkable

from cubench.address import Address, Keypair


class EngineError(Exception):
    """Base exception raised by execution engines.

    Examples: funding beyond the faucet, malformed operations.
    """


class ProgramError(EngineError):
    """Raised by a program handler to fail the current operation."""


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instruction:
    """A single call into a program."""

    program_id: Address
    accounts: tuple[Address, ...] = ()
    data: bytes = b""


@dataclass(frozen=True)
class Operation:
    """A signed (or not yet signed) unit of work submitted to an engine.

    ``signatures`` maps signer addresses to signatures; the payer's
    signature doubles as the operation id.
    """

    instructions: tuple[Instruction, ...]
    payer: Address
    signers: tuple[Address, ...] = ()
    sequencing_token: Optional[str] = None
    signatures: dict[Address, bytes] = field(default_factory=dict, compare=False)

    def message_bytes(self) -> bytes:
        """Serialise everything a signature covers."""
        parts = [bytes(self.payer), (self.sequencing_token or "").encode("utf-8")]
        for instruction in self.instructions:
            parts.append(bytes(instruction.program_id))
            parts.append(struct.pack("<I", len(instruction.accounts)))
            parts.extend(bytes(account) for account in instruction.accounts)
            parts.append(struct.pack("<I", len(instruction.data)))
            parts.append(instruction.data)
        return b"".join(parts)

    def sign(self, *keypairs: Keypair) -> Operation:
        """Return a copy signed by *keypairs* (existing signatures kept)."""
        message = self.message_bytes()
        signatures = dict(self.signatures)
        for keypair in keypairs:
            signatures[keypair.address] = keypair.sign(message)
        return replace(self, signatures=signatures)

    @property
    def operation_id(self) -> Optional[bytes]:
        return self.signatures.get(self.payer)

    @property
    def program_ids(self) -> list[Address]:
        return [instruction.program_id for instruction in self.instructions]


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InnerInvocation:
    """A nested call made by a program while an instruction executed."""

    instruction_index: int
    depth: int
    program_id: Address


@dataclass
class SimulationOutcome:
    """Result of a non-committing diagnostic run."""

    logs: list[str] = field(default_factory=list)
    consumed_cu: int = 0
    inner_invocations: list[InnerInvocation] = field(default_factory=list)
    program_touch_list: list[Address] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ExecutionOutcome:
    """Result of a committed execution."""

    consumed_cu: int = 0
    logs: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class ExecutionEngine(Protocol):
    """Protocol every benchmarkable engine implements."""

    @property
    def slot(self) -> int: ...

    def fund_account(self, address: Address, amount: int) -> None: ...

    def refresh_sequencing_token(self) -> str: ...

    def latest_sequencing_token(self) -> str: ...

    def simulate(self, operation: Operation) -> SimulationOutcome: ...

    def execute(self, operation: Operation) -> ExecutionOutcome: ...


@runtime_checkable
class SnapshotCapable(Protocol):
    """Optional engine capability needed for isolated sampling."""

    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...
