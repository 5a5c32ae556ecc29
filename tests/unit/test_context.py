"""Tests for execution-context discovery."""

from __future__ import annotations

import logging

import pytest

from cubench.address import Address, Keypair
from cubench.address_book import AddressBook
from cubench.context import discover_context
from cubench.engine import SYSTEM_PROGRAM_ID, Instruction, MemoryEngine, Operation, system_transfer
from cubench.exceptions import HarnessStateError
from cubench.harness import ExecutionHarness
from cubench.subject import (
    InstructionBenchmark,
    PerAttemptBuildSource,
    ReusedBuildSource,
    TransactionBenchmark,
)

ROUTER_ID = Address(b"\x07" * 32)


class _RouterMixin:
    """Deploys a program that forwards two transfers through nested calls."""

    def __init__(self) -> None:
        self.payer = Keypair.from_seed("context-tests:payer")
        self.sink = Keypair.from_seed("context-tests:sink").address

    def setup_environment(self) -> MemoryEngine:
        engine = MemoryEngine()
        engine.fund_account(self.payer.address, 50_000_000)
        payer, sink = self.payer.address, self.sink

        def router(ctx, instruction: Instruction) -> None:
            ctx.consume(2_000)
            ctx.log("routing")
            ctx.invoke(system_transfer(payer, sink, 100))
            ctx.invoke(system_transfer(payer, sink, 200))

        engine.deploy_program(ROUTER_ID, router)
        return engine

    def sign(self, operation: Operation) -> Operation:
        return operation.sign(self.payer)

    def address_book(self) -> AddressBook:
        return AddressBook.from_mapping({ROUTER_ID: "router", SYSTEM_PROGRAM_ID: "system_program"})


class RouterInstruction(_RouterMixin, InstructionBenchmark):
    name = "router"

    def build_operation(self, engine):
        return Instruction(program_id=ROUTER_ID), [self.payer.address]


class RouterWorkflow(_RouterMixin, TransactionBenchmark):
    name = "router_then_transfer"

    def build_operation(self, engine):
        return (
            [Instruction(program_id=ROUTER_ID), system_transfer(self.payer.address, self.sink, 5)],
            [self.payer.address],
        )


class TestProgramContext:
    def test_nested_invocations_counted(self) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        context = discover_context(harness, ReusedBuildSource(subject), subject.address_book())

        assert context.program_context.target_id == str(ROUTER_ID)
        assert context.program_context.display_name == "router"
        assert context.program_context.nested_invocation_count == 2
        assert context.workflow_context is None

    def test_execution_stats(self) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        context = discover_context(harness, ReusedBuildSource(subject), subject.address_book())

        assert context.execution_stats.simulated_cu == 2_000 + 2 * (1_000 + 150)
        assert "Program log: routing" in context.execution_stats.logs
        assert context.execution_stats.logs[0] == f"Program {ROUTER_ID} invoke [1]"

    def test_engine_snapshot_follows_simulation(self) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        context = discover_context(harness, ReusedBuildSource(subject), subject.address_book())

        assert context.engine_snapshot.slot == 0
        assert context.engine_snapshot.state_digest == harness.engine.latest_sequencing_token()

    def test_unregistered_program_uses_address_text(self) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        context = discover_context(harness, ReusedBuildSource(subject), AddressBook())
        assert context.program_context.display_name == str(ROUTER_ID)

    def test_consumes_the_single_simulation(self) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        source = ReusedBuildSource(subject)
        discover_context(harness, source, subject.address_book())
        with pytest.raises(HarnessStateError):
            harness.simulate(source)

    def test_logs_discovery(self, caplog: pytest.LogCaptureFixture) -> None:
        subject = RouterInstruction()
        harness = ExecutionHarness(subject.setup_environment())
        with caplog.at_level(logging.INFO, logger="cubench.context"):
            discover_context(harness, ReusedBuildSource(subject), subject.address_book())
        assert "target=router nested=2" in caplog.text


class TestWorkflowContext:
    def test_sequence_and_usage(self) -> None:
        subject = RouterWorkflow()
        harness = ExecutionHarness(subject.setup_environment())
        context = discover_context(
            harness,
            PerAttemptBuildSource(subject),
            subject.address_book(),
            workflow_name=subject.name,
        )
        workflow = context.workflow_context

        assert workflow is not None
        assert workflow.workflow_name == "router_then_transfer"
        assert workflow.invocation_sequence == (
            "router",
            "system_program_nested",
            "system_program_nested",
            "system_program",
        )
        assert workflow.total_nested_invocations == 2
        counts = {summary.display_name: summary.invocation_count for summary in workflow.involved_programs}
        assert counts == {"router": 1, "system_program": 3}
        program_ids = [summary.program_id for summary in workflow.involved_programs]
        assert program_ids == sorted(program_ids)
