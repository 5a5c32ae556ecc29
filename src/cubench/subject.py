"""Capabilities a caller implements to describe a measurable operation.

Two shapes share one pipeline:

- :class:`InstructionBenchmark` measures a single instruction. It is built
  once per run; every attempt re-wraps it with a fresh sequencing token and
  asks the subject to sign.
- :class:`TransactionBenchmark` measures a complete multi-instruction
  operation. It is rebuilt for every attempt, so the subject can mint fresh
  ephemeral keys and avoid collisions such as creating an account that
  already exists.

The pipeline only ever sees an :class:`OperationSource`; adding another
paradigm means adding another source, not touching the harness.

Example::

    class SolTransfer(InstructionBenchmark):
        name = "sol_transfer"

        def setup_environment(self) -> MemoryEngine:
            engine = MemoryEngine()
            engine.fund_account(self.sender.address, 200_000_000)
            return engine

        def build_operation(self, engine):
            ix = system_transfer(self.sender.address, self.recipient, 500_000)
            return ix, [self.sender.address]

        def sign(self, operation):
            return operation.sign(self.sender)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from cubench.address import Address
from cubench.address_book import AddressBook
from cubench.engine.protocol import ExecutionEngine, Instruction, Operation
from cubench.models import BenchmarkType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Subject capabilities
# ---------------------------------------------------------------------------


class _BenchmarkSubject(ABC):
    """Members shared by both subject shapes."""

    #: Stable identity of the subject; keys the estimate database and names
    #: its result file. Every concrete subject must set it.
    name: str

    benchmark_type: BenchmarkType

    @abstractmethod
    def setup_environment(self) -> ExecutionEngine:
        """Build a fresh engine with the shared base state.

        Called exactly once per run. Fund accounts and deploy programs here.
        """

    @abstractmethod
    def sign(self, operation: Operation) -> Operation:
        """Return *operation* signed by every required signer."""

    def address_book(self) -> AddressBook:
        """Display names for reporting. Empty unless overridden."""
        return AddressBook()


class InstructionBenchmark(_BenchmarkSubject):
    """A single instruction measured in isolation."""

    benchmark_type = BenchmarkType.INSTRUCTION

    @abstractmethod
    def build_operation(
        self, engine: ExecutionEngine
    ) -> tuple[Instruction, Sequence[Address]]:
        """Return the target instruction and its required signers.

        The first signer pays for the operation.
        """


class TransactionBenchmark(_BenchmarkSubject):
    """A complete multi-instruction operation, rebuilt for every attempt."""

    benchmark_type = BenchmarkType.TRANSACTION

    @abstractmethod
    def build_operation(
        self, engine: ExecutionEngine
    ) -> tuple[Sequence[Instruction], Sequence[Address]]:
        """Return the instructions of one operation and its required signers.

        The first signer pays for the operation.
        """


BenchmarkSubject = InstructionBenchmark | TransactionBenchmark


# ---------------------------------------------------------------------------
# Operation sources
# ---------------------------------------------------------------------------


class OperationSource(ABC):
    """Turns a subject capability into signed operations for the harness."""

    def __init__(self, subject: BenchmarkSubject) -> None:
        self.subject = subject
        self.builds = 0

    @abstractmethod
    def next_operation(self, engine: ExecutionEngine, sequencing_token: str) -> Operation:
        """Return a signed operation stamped with *sequencing_token*."""

    def _assemble(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Address],
        sequencing_token: str,
    ) -> Operation:
        if not instructions:
            raise ValueError(f"subject {self.subject.name!r} built no instructions")
        if not signers:
            raise ValueError(f"subject {self.subject.name!r} returned no signers")
        unsigned = Operation(
            instructions=tuple(instructions),
            payer=signers[0],
            signers=tuple(signers),
            sequencing_token=sequencing_token,
        )
        signed = self.subject.sign(unsigned)
        if not isinstance(signed, Operation):
            raise TypeError(
                f"subject {self.subject.name!r} sign() returned "
                f"{type(signed).__name__}, expected Operation"
            )
        missing = [
            str(address)
            for address in dict.fromkeys(unsigned.signers)
            if address not in signed.signatures
        ]
        if missing:
            raise ValueError(
                f"subject {self.subject.name!r} did not sign for required "
                f"signer(s): {', '.join(missing)}"
            )
        return signed


class ReusedBuildSource(OperationSource):
    """Builds the instruction once and re-signs it for every attempt."""

    def __init__(self, subject: InstructionBenchmark) -> None:
        super().__init__(subject)
        self._built: Optional[tuple[Instruction, tuple[Address, ...]]] = None

    def next_operation(self, engine: ExecutionEngine, sequencing_token: str) -> Operation:
        if self._built is None:
            instruction, signers = self.subject.build_operation(engine)
            self.builds += 1
            self._built = (instruction, tuple(signers))
            logger.debug("Built instruction for %s", self.subject.name)
        instruction, signers = self._built
        return self._assemble([instruction], signers, sequencing_token)


class PerAttemptBuildSource(OperationSource):
    """Rebuilds the whole operation for every attempt."""

    def next_operation(self, engine: ExecutionEngine, sequencing_token: str) -> Operation:
        instructions, signers = self.subject.build_operation(engine)
        self.builds += 1
        return self._assemble(list(instructions), list(signers), sequencing_token)


def operation_source_for(subject: BenchmarkSubject) -> OperationSource:
    """Pick the operation source matching the subject's capability."""
    if isinstance(subject, InstructionBenchmark):
        return ReusedBuildSource(subject)
    if isinstance(subject, TransactionBenchmark):
        return PerAttemptBuildSource(subject)
    raise TypeError(
        f"{type(subject).__name__} is neither an InstructionBenchmark "
        "nor a TransactionBenchmark"
    )
