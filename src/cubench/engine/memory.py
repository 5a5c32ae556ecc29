"""In-memory reference implementation of the execution engine boundary.

:class:`MemoryEngine` is a small deterministic ledger double: it keeps
account balances, runs a built-in system program plus any handlers
deployed by the caller, meters compute units and rejects operations the
way a real ledger would (stale sequencing token, missing signature,
already processed).  It exists so the benchmarking pipeline can be
exercised end to end without a real VM.

Usage::

    engine = MemoryEngine()
    engine.fund_account(sender.address, 1_000_000)
    engine.refresh_sequencing_token()
    op = Operation(
        instructions=(system_transfer(sender.address, recipient, 500),),
        payer=sender.address,
        signers=(sender.address,),
        sequencing_token=engine.latest_sequencing_token(),
    ).sign(sender)
    outcome = engine.execute(op)
"""

from __future__ import annotations

import copy
import hashlib
import logging
import struct
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import base58

from cubench.address import ADDRESS_LENGTH, Address
from cubench.engine.protocol import (
    EngineError,
    ExecutionOutcome,
    InnerInvocation,
    Instruction,
    Operation,
    ProgramError,
    SimulationOutcome,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SYSTEM_PROGRAM_ID = Address(bytes(ADDRESS_LENGTH))

SYSTEM_INSTRUCTION_CU = 150
INVOKE_CU = 1_000
DEFAULT_CU_PER_INSTRUCTION = 200_000
MAX_CU_PER_OPERATION = 1_400_000
MAX_INVOKE_DEPTH = 4
LAMPORTS_PER_SIGNATURE = 5_000
RECENT_TOKEN_WINDOW = 150
DEFAULT_FAUCET_LAMPORTS = 10**18

_CREATE_ACCOUNT = 0
_TRANSFER = 2

_GENESIS_SEED = b"cubench-genesis"


@dataclass
class Account:
    """Ledger account state."""

    lamports: int = 0
    data: bytes = b""
    owner: Address = SYSTEM_PROGRAM_ID

    @property
    def in_use(self) -> bool:
        return self.lamports > 0 or bool(self.data) or self.owner != SYSTEM_PROGRAM_ID


ProgramHandler = Callable[["InvocationContext", Instruction], None]


# ---------------------------------------------------------------------------
# Instruction builders
# ---------------------------------------------------------------------------


def system_transfer(source: Address, destination: Address, lamports: int) -> Instruction:
    """Build a system-program transfer instruction."""
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=(source, destination),
        data=struct.pack("<IQ", _TRANSFER, lamports),
    )


def system_create_account(
    funder: Address,
    new_account: Address,
    lamports: int,
    space: int,
    owner: Address = SYSTEM_PROGRAM_ID,
) -> Instruction:
    """Build a system-program create-account instruction.

    Both *funder* and *new_account* must sign the operation.
    """
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=(funder, new_account),
        data=struct.pack("<IQQ", _CREATE_ACCOUNT, lamports, space) + bytes(owner),
    )


# ---------------------------------------------------------------------------
# Execution internals
# ---------------------------------------------------------------------------


@dataclass
class _LedgerState:
    accounts: dict[Address, Account] = field(default_factory=dict)
    recent_tokens: deque = field(default_factory=lambda: deque(maxlen=RECENT_TOKEN_WINDOW))
    token_counter: int = 0
    processed: set[bytes] = field(default_factory=set)
    faucet_remaining: int = DEFAULT_FAUCET_LAMPORTS
    slot: int = 0


class _ComputeMeter:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.consumed = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.consumed

    def consume(self, units: int) -> None:
        if units < 0:
            raise ValueError("compute units must be non-negative")
        if self.consumed + units > self.limit:
            self.consumed = self.limit
            raise ProgramError(
                f"exceeded compute budget of {self.limit} units"
            )
        self.consumed += units


@dataclass
class _Run:
    accounts: dict[Address, Account]
    meter: _ComputeMeter
    signers: frozenset[Address]
    logs: list[str] = field(default_factory=list)
    inner: list[InnerInvocation] = field(default_factory=list)
    touched: list[Address] = field(default_factory=list)

    def touch(self, program_id: Address) -> None:
        if program_id not in self.touched:
            self.touched.append(program_id)


class InvocationContext:
    """Capabilities handed to a program handler for one invocation."""

    def __init__(
        self,
        engine: MemoryEngine,
        run: _Run,
        instruction_index: int,
        depth: int,
        program_id: Address,
    ) -> None:
        self._engine = engine
        self._run = run
        self.instruction_index = instruction_index
        self.depth = depth
        self.program_id = program_id

    def consume(self, units: int) -> None:
        self._run.meter.consume(units)

    def log(self, message: str) -> None:
        self._run.logs.append(f"Program log: {message}")

    def is_signer(self, address: Address) -> bool:
        return address in self._run.signers

    def require_signer(self, address: Address) -> None:
        if not self.is_signer(address):
            raise ProgramError(f"missing required signature for {address}")

    def account(self, address: Address) -> Optional[Account]:
        return self._run.accounts.get(address)

    def account_or_create(self, address: Address) -> Account:
        return self._run.accounts.setdefault(address, Account())

    def invoke(self, instruction: Instruction) -> None:
        """Make a nested call into another program."""
        depth = self.depth + 1
        if depth > MAX_INVOKE_DEPTH:
            raise ProgramError(f"nested invocation depth {depth} exceeds {MAX_INVOKE_DEPTH}")
        self.consume(INVOKE_CU)
        self._run.inner.append(
            InnerInvocation(
                instruction_index=self.instruction_index,
                depth=depth,
                program_id=instruction.program_id,
            )
        )
        self._engine._invoke(self._run, instruction, self.instruction_index, depth)


def _system_program(ctx: InvocationContext, instruction: Instruction) -> None:
    ctx.consume(SYSTEM_INSTRUCTION_CU)
    data = instruction.data
    if len(data) < 4:
        raise ProgramError("invalid system instruction data")
    (tag,) = struct.unpack_from("<I", data)

    if tag == _TRANSFER:
        if len(data) != 12 or len(instruction.accounts) < 2:
            raise ProgramError("malformed transfer instruction")
        (lamports,) = struct.unpack_from("<Q", data, 4)
        source, destination = instruction.accounts[:2]
        ctx.require_signer(source)
        funder = ctx.account(source)
        if funder is None or funder.lamports < lamports:
            raise ProgramError(f"insufficient lamports in {source} for transfer of {lamports}")
        funder.lamports -= lamports
        ctx.account_or_create(destination).lamports += lamports
        return

    if tag == _CREATE_ACCOUNT:
        if len(data) != 20 + ADDRESS_LENGTH or len(instruction.accounts) < 2:
            raise ProgramError("malformed create_account instruction")
        lamports, space = struct.unpack_from("<QQ", data, 4)
        owner = Address(data[20:])
        source, new_address = instruction.accounts[:2]
        ctx.require_signer(source)
        ctx.require_signer(new_address)
        existing = ctx.account(new_address)
        if existing is not None and existing.in_use:
            raise ProgramError(f"account {new_address} already in use")
        funder = ctx.account(source)
        if funder is None or funder.lamports < lamports:
            raise ProgramError(f"insufficient lamports in {source} to create account")
        funder.lamports -= lamports
        new_account = ctx.account_or_create(new_address)
        new_account.lamports = lamports
        new_account.data = bytes(space)
        new_account.owner = owner
        return

    raise ProgramError(f"unknown system instruction {tag}")


# ---------------------------------------------------------------------------
# MemoryEngine
# ---------------------------------------------------------------------------


class MemoryEngine:
    """Deterministic in-process ledger implementing ``ExecutionEngine``.

    Two engines built the same way and fed the same operations produce the
    same sequencing tokens, logs and CU values.

    Args:
        faucet_lamports: Total lamports :meth:`fund_account` may hand out.
        slot: Initial slot.
    """

    def __init__(
        self,
        faucet_lamports: int = DEFAULT_FAUCET_LAMPORTS,
        slot: int = 0,
    ) -> None:
        self._programs: dict[Address, ProgramHandler] = {SYSTEM_PROGRAM_ID: _system_program}
        self._state = _LedgerState(faucet_remaining=faucet_lamports, slot=slot)
        self._state.recent_tokens.append(_encode_digest(_GENESIS_SEED))

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    @property
    def slot(self) -> int:
        return self._state.slot

    def fund_account(self, address: Address, amount: int) -> None:
        if amount <= 0:
            raise EngineError(f"funding amount must be positive, got {amount}")
        if amount > self._state.faucet_remaining:
            raise EngineError(
                f"faucet exhausted: requested {amount}, "
                f"{self._state.faucet_remaining} remaining"
            )
        self._state.faucet_remaining -= amount
        self._state.accounts.setdefault(address, Account()).lamports += amount
        logger.debug("Funded %s with %d lamports", address, amount)

    def deploy_program(self, program_id: Address, handler: ProgramHandler) -> None:
        if program_id == SYSTEM_PROGRAM_ID:
            raise EngineError("the system program cannot be replaced")
        self._programs[program_id] = handler

    def get_account(self, address: Address) -> Optional[Account]:
        account = self._state.accounts.get(address)
        return copy.deepcopy(account) if account is not None else None

    def get_balance(self, address: Address) -> int:
        account = self._state.accounts.get(address)
        return account.lamports if account is not None else 0

    # ------------------------------------------------------------------
    # Sequencing tokens
    # ------------------------------------------------------------------

    def refresh_sequencing_token(self) -> str:
        state = self._state
        state.token_counter += 1
        previous = state.recent_tokens[-1]
        token = _encode_digest(
            previous.encode("ascii") + state.token_counter.to_bytes(8, "little")
        )
        state.recent_tokens.append(token)
        return token

    def latest_sequencing_token(self) -> str:
        return self._state.recent_tokens[-1]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> Any:
        return copy.deepcopy(self._state)

    def restore(self, snapshot: Any) -> None:
        if not isinstance(snapshot, _LedgerState):
            raise EngineError("snapshot was not produced by MemoryEngine")
        self._state = copy.deepcopy(snapshot)

    # ------------------------------------------------------------------
    # Running operations
    # ------------------------------------------------------------------

    def simulate(self, operation: Operation) -> SimulationOutcome:
        run, error = self._run(operation, copy.deepcopy(self._state.accounts))
        return SimulationOutcome(
            logs=run.logs,
            consumed_cu=run.meter.consumed,
            inner_invocations=run.inner,
            program_touch_list=run.touched,
            error=error,
        )

    def execute(self, operation: Operation) -> ExecutionOutcome:
        run, error = self._run(operation, copy.deepcopy(self._state.accounts))
        if error is None:
            self._state.accounts = run.accounts
            self._state.processed.add(operation.operation_id)
        return ExecutionOutcome(
            consumed_cu=run.meter.consumed,
            logs=run.logs,
            error=error,
        )

    def _run(
        self,
        operation: Operation,
        accounts: dict[Address, Account],
    ) -> tuple[_Run, Optional[str]]:
        limit = min(
            DEFAULT_CU_PER_INSTRUCTION * max(len(operation.instructions), 1),
            MAX_CU_PER_OPERATION,
        )
        run = _Run(
            accounts=accounts,
            meter=_ComputeMeter(limit),
            signers=frozenset(operation.signatures),
        )

        error = self._check_operation(operation)
        if error is not None:
            return run, error

        fee = LAMPORTS_PER_SIGNATURE * len(operation.signatures)
        payer = accounts.get(operation.payer)
        if payer is None or payer.lamports < fee:
            return run, f"insufficient funds for fee of {fee} lamports"
        payer.lamports -= fee

        for index, instruction in enumerate(operation.instructions):
            try:
                self._invoke(run, instruction, index, depth=1)
            except ProgramError as exc:
                return run, f"Error processing instruction {index}: {exc}"
        return run, None

    def _check_operation(self, operation: Operation) -> Optional[str]:
        if not operation.instructions:
            return "operation has no instructions"
        if operation.sequencing_token not in self._state.recent_tokens:
            return f"sequencing token not found: {operation.sequencing_token}"
        for signer in (operation.payer, *operation.signers):
            if signer not in operation.signatures:
                return f"missing signature for {signer}"
        if operation.operation_id in self._state.processed:
            return "operation already processed"
        return None

    def _invoke(self, run: _Run, instruction: Instruction, index: int, depth: int) -> None:
        program_id = instruction.program_id
        run.touch(program_id)
        run.logs.append(f"Program {program_id} invoke [{depth}]")
        handler = self._programs.get(program_id)
        if handler is None:
            run.logs.append(f"Program {program_id} failed: program not deployed")
            raise ProgramError(f"program {program_id} is not deployed")

        before = run.meter.consumed
        budget = run.meter.remaining
        context = InvocationContext(self, run, index, depth, program_id)
        try:
            handler(context, instruction)
        except ProgramError as exc:
            run.logs.append(f"Program {program_id} failed: {exc}")
            raise
        run.logs.append(
            f"Program {program_id} consumed {run.meter.consumed - before} "
            f"of {budget} compute units"
        )
        run.logs.append(f"Program {program_id} success")


def _encode_digest(seed: bytes) -> str:
    return base58.b58encode(hashlib.sha256(seed).digest()).decode("ascii")
