"""Ready-made benchmark subjects for the in-memory engine.

They double as templates for writing subjects against a real engine and
as targets for ``cubench run``::

    cubench run cubench.subjects:SystemTransferBenchmark --samples 100
"""

from __future__ import annotations

from typing import Optional, Sequence

from cubench.address import Address, Keypair
from cubench.address_book import AddressBook
from cubench.engine.memory import (
    SYSTEM_PROGRAM_ID,
    MemoryEngine,
    system_create_account,
    system_transfer,
)
from cubench.engine.protocol import Instruction, Operation
from cubench.subject import InstructionBenchmark, TransactionBenchmark


class SystemTransferBenchmark(InstructionBenchmark):
    """One system-program transfer between two fixed accounts.

    Args:
        transfer_amount: Lamports moved per sample.
        sender_balance: Initial sender funding; enough for 200+ transfers
            including fees by default.
        seed: Derive both keypairs from this seed for reproducible runs.
            Random keypairs are used when omitted.
    """

    name = "system_transfer"

    def __init__(
        self,
        transfer_amount: int = 500_000,
        sender_balance: int = 200_000_000,
        seed: Optional[str] = None,
    ) -> None:
        if seed is None:
            self.sender = Keypair.generate()
            self.recipient = Keypair.generate()
        else:
            self.sender = Keypair.from_seed(f"{seed}:sender")
            self.recipient = Keypair.from_seed(f"{seed}:recipient")
        self.transfer_amount = transfer_amount
        self.sender_balance = sender_balance

    def setup_environment(self) -> MemoryEngine:
        engine = MemoryEngine()
        engine.fund_account(self.sender.address, self.sender_balance)
        return engine

    def build_operation(self, engine: MemoryEngine) -> tuple[Instruction, list[Address]]:
        instruction = system_transfer(
            self.sender.address, self.recipient.address, self.transfer_amount
        )
        return instruction, [self.sender.address]

    def sign(self, operation: Operation) -> Operation:
        return operation.sign(self.sender)

    def address_book(self) -> AddressBook:
        return AddressBook.from_mapping(
            {
                SYSTEM_PROGRAM_ID: "system_program",
                self.sender.address: "sender",
                self.recipient.address: "recipient",
            }
        )


class AccountSetupBenchmark(TransactionBenchmark):
    """Create a fresh account, then fund a second wallet, in one operation.

    A new account keypair is minted on every build; reusing one would fail
    with "already in use" from the second sample on.

    Args:
        account_space: Bytes allocated for the new account.
        account_lamports: Lamports deposited into the new account.
        seed: Derive keypairs deterministically; each build advances a
            counter so minted accounts stay unique.
    """

    name = "account_setup"

    def __init__(
        self,
        account_space: int = 82,
        account_lamports: int = 1_461_600,
        seed: Optional[str] = None,
    ) -> None:
        self._seed = seed
        self._minted = 0
        self.authority = self._keypair("authority")
        self.wallet = self._keypair("wallet")
        self.account_space = account_space
        self.account_lamports = account_lamports
        self.new_account: Optional[Keypair] = None

    def _keypair(self, label: str) -> Keypair:
        if self._seed is None:
            return Keypair.generate()
        return Keypair.from_seed(f"{self._seed}:{label}")

    def setup_environment(self) -> MemoryEngine:
        engine = MemoryEngine()
        engine.fund_account(self.authority.address, 1_000_000_000)
        return engine

    def build_operation(
        self, engine: MemoryEngine
    ) -> tuple[Sequence[Instruction], list[Address]]:
        self._minted += 1
        self.new_account = self._keypair(f"account-{self._minted}")
        instructions = [
            system_create_account(
                self.authority.address,
                self.new_account.address,
                self.account_lamports,
                self.account_space,
            ),
            system_transfer(self.authority.address, self.wallet.address, 10_000),
        ]
        return instructions, [self.authority.address, self.new_account.address]

    def sign(self, operation: Operation) -> Operation:
        return operation.sign(self.authority, self.new_account)

    def address_book(self) -> AddressBook:
        return AddressBook.from_mapping(
            {
                SYSTEM_PROGRAM_ID: "system_program",
                self.authority.address: "authority",
                self.wallet.address: "wallet",
            }
        )
