"""Tests for sequencing, resumption and reporting of transfers."""

import json
import threading
import unittest

from execution_adapter.primary_network.client import JsonRpcChainClient
from execution_adapter.primary_network.networks import resolve_network
from execution_adapter.primary_network.simulator import Fault, SimulatedLedger
from execution_controller.config import TransferConfig
from execution_controller.controller import RESUME_FLAG, TransferStateMachine
from execution_controller.executor import StepExecutor
from execution_controller.modes import MachineState, StepPhase
from transfer_engine.errors import InvalidResumeStep, SelfTransfer
from transfer_engine.models import ChainClass, Direction
from transfer_engine.planner import build_intent
from wallet_core.hardware import HardwareSigner
from wallet_core.models import SigningContext
from wallet_core.signer import SoftwareSigner

P = ChainClass.PRIMARY
X = ChainClass.SECONDARY
FEE = 1_000_000
ONE = 1_000_000_000


class HangingDevice:
    def __init__(self, release: threading.Event) -> None:
        self._release = release

    def addresses(self, indices):
        return tuple("ef" * 20 for _ in indices)

    def sign(self, payload: bytes, index: int) -> str:
        self._release.wait(5)
        return "late"


class TransferStateMachineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = SimulatedLedger(fee=FEE)
        self.sender = SoftwareSigner(b"\x01" * 32)
        self.receiver = SoftwareSigner(b"\x02" * 32)
        self.sender_address = self.sender.addresses()[0]
        self.receiver_address = self.receiver.addresses()[0]
        self.lines = []
        self.sleeps = []
        self.confirmations = []
        self.ledger.fund(P, self.sender_address, 10 * ONE)

    def _machine(self, confirm_answer: bool = True, skip_confirmation: bool = False):
        def confirm(summary) -> bool:
            self.confirmations.append(summary)
            return confirm_answer

        return TransferStateMachine(
            config=TransferConfig(skip_confirmation=skip_confirmation, settle_delay_seconds=0.5),
            executor=StepExecutor(clients=self.ledger.clients(), request_timeout=1.0),
            confirm=confirm,
            notify=self.lines.append,
            sleep=self.sleeps.append,
        )

    def _context(self, authority):
        return SigningContext(authority=authority, chains=frozenset(ChainClass))

    def _intent(self, direction, destination, amount="1", source=None, destination_address=None):
        return build_intent(
            direction=direction,
            destination=destination,
            display_amount=amount,
            fee=FEE,
            source_address=source or self.sender_address,
            destination_address=destination_address or self.receiver_address,
        )

    def _send(self, destination=P):
        intent = self._intent(Direction.SEND_OUT, destination)
        return self._machine().run(intent, self._context(self.sender))

    def _receive(self, destination=P, resume_step=0, confirm_answer=True):
        intent = self._intent(
            Direction.RECEIVE_IN,
            destination,
            source=self.receiver_address,
            destination_address=self.receiver_address,
        )
        return self._machine(confirm_answer).run(
            intent, self._context(self.receiver), resume_step=resume_step
        )

    def test_send_settles_and_debits_amount_plus_four_fees(self) -> None:
        outcome = self._send()

        self.assertEqual(outcome.state, MachineState.SETTLED)
        self.assertEqual(outcome.cursor, 1)
        self.assertIsNone(outcome.resume_step)
        self.assertEqual(self.ledger.balance(P, self.sender_address), 10 * ONE - ONE - 4 * FEE)
        self.assertEqual(self.ledger.pending_import(X, self.receiver_address), ONE + 3 * FEE)
        self.assertIn("- debit a total of 1.004000000", self.lines)
        self.assertEqual(self.sleeps, [])

    def test_send_then_receive_lands_exact_amount(self) -> None:
        self._send()
        self.lines.clear()
        outcome = self._receive()

        self.assertEqual(outcome.state, MachineState.SETTLED)
        self.assertEqual(outcome.cursor, 3)
        self.assertEqual(self.ledger.balance(P, self.receiver_address), ONE)
        self.assertEqual(self.ledger.balance(X, self.receiver_address), 0)
        self.assertEqual(self.sleeps, [0.5, 0.5])
        self.assertEqual(
            [(transition.state, transition.cursor) for transition in outcome.transitions],
            [
                (MachineState.IDLE, 0),
                (MachineState.STEP_IN_FLIGHT, 0),
                (MachineState.STEP_COMPLETE, 1),
                (MachineState.STEP_IN_FLIGHT, 1),
                (MachineState.STEP_COMPLETE, 2),
                (MachineState.STEP_IN_FLIGHT, 2),
                (MachineState.SETTLED, 3),
            ],
        )

    def test_send_to_secondary_then_single_import(self) -> None:
        self._send(destination=X)
        outcome = self._receive(destination=X)
        self.assertEqual(outcome.state, MachineState.SETTLED)
        self.assertEqual(outcome.cursor, 1)
        self.assertEqual(self.ledger.balance(X, self.receiver_address), ONE)

    def test_confirmation_is_asked_once_per_invocation(self) -> None:
        self._send()
        self._receive()
        self.assertEqual(len(self.confirmations), 2)
        self.assertEqual(len(self.confirmations[1].steps), 3)

    def test_declined_confirmation_aborts_without_submitting(self) -> None:
        self._send()
        submitted = self.ledger.submission_count
        outcome = self._receive(confirm_answer=False)

        self.assertEqual(outcome.state, MachineState.ABORTED)
        self.assertEqual(outcome.cursor, 0)
        self.assertEqual(self.ledger.submission_count, submitted)
        self.assertIn("Cancelled", outcome.report())

    def test_skip_confirmation_never_prompts(self) -> None:
        intent = self._intent(Direction.SEND_OUT, P)
        outcome = self._machine(confirm_answer=False, skip_confirmation=True).run(
            intent, self._context(self.sender)
        )
        self.assertEqual(outcome.state, MachineState.SETTLED)
        self.assertEqual(self.confirmations, [])

    def test_receive_failing_at_first_step_reports_zero(self) -> None:
        self._send()
        self.ledger.inject(X, Fault.REJECT)
        outcome = self._receive()

        self.assertEqual(outcome.state, MachineState.FAILED)
        self.assertEqual(outcome.resume_step, 0)
        self.assertEqual(len(outcome.results), 1)
        self.assertTrue(outcome.results[0].retry_safe)
        self.assertIn("ERROR: step 0 was refused by the ledger; nothing was applied", outcome.report())
        self.assertIn(
            f"ERROR: restart from this step by using the same command with extra "
            f"arguments: {RESUME_FLAG} 0",
            outcome.report(),
        )

    def test_timeout_at_second_step_reports_one_and_resume_finishes(self) -> None:
        self._send()
        self.ledger.inject(X, Fault.TIMEOUT, after=1)
        failed = self._receive()

        self.assertEqual(failed.state, MachineState.FAILED)
        self.assertEqual(failed.cursor, 1)
        self.assertEqual(failed.resume_step, 1)
        self.assertTrue(failed.ambiguous)
        self.assertEqual(failed.results[-1].outcome, StepPhase.TIMEOUT_PENDING_UNKNOWN)
        self.assertTrue(any(line.startswith("WARNING:") for line in failed.report()))

        self.sleeps.clear()
        resumed = self._receive(resume_step=1)
        self.assertEqual(resumed.state, MachineState.SETTLED)
        self.assertEqual([result.step_index for result in resumed.results], [1, 2])
        self.assertEqual(self.sleeps, [0.5])
        self.assertEqual(self.ledger.balance(P, self.receiver_address), ONE)

    def test_applied_timeout_is_resumed_past_the_accepted_step(self) -> None:
        self._send()
        self.ledger.inject(X, Fault.TIMEOUT_APPLIED, after=1)
        failed = self._receive()
        self.assertEqual(failed.resume_step, 1)
        self.assertEqual(self.ledger.pending_import(P, self.receiver_address), ONE + FEE)

        resumed = self._receive(resume_step=2)
        self.assertEqual(resumed.state, MachineState.SETTLED)
        self.assertEqual([result.step_index for result in resumed.results], [2])
        self.assertEqual(self.ledger.balance(P, self.receiver_address), ONE)

    def test_send_failure_reports_restart_without_resume_flag(self) -> None:
        self.ledger.inject(P, Fault.UNREACHABLE)
        outcome = self._send()
        self.assertEqual(outcome.state, MachineState.FAILED)
        self.assertEqual(outcome.resume_step, 0)
        self.assertIn("ERROR: restart from this step by using the same command", outcome.report())
        self.assertEqual(self.ledger.balance(P, self.sender_address), 10 * ONE)

    def test_garbled_status_reply_after_issue_fails_with_resume_cursor(self) -> None:
        def transport(url, body, timeout):
            if json.loads(body)["method"].endswith("issueTx"):
                return b'{"jsonrpc": "2.0", "id": 1, "result": {"txID": "abc"}}'
            return b"\xff\xfe\xfa"

        settings = resolve_network("local")
        clients = self.ledger.clients()
        clients[X] = JsonRpcChainClient(
            endpoint=settings.endpoint(X), network_id=settings.network_id, transport=transport
        )
        machine = TransferStateMachine(
            config=TransferConfig(settle_delay_seconds=0),
            executor=StepExecutor(clients=clients, request_timeout=1.0),
            confirm=lambda summary: True,
        )
        intent = self._intent(
            Direction.RECEIVE_IN,
            P,
            source=self.receiver_address,
            destination_address=self.receiver_address,
        )

        outcome = machine.run(intent, self._context(self.receiver), resume_step=1)

        self.assertEqual(outcome.state, MachineState.FAILED)
        self.assertEqual(outcome.resume_step, 1)
        self.assertTrue(outcome.ambiguous)
        self.assertTrue(any(f"{RESUME_FLAG} 1" in line for line in outcome.report()))

    def test_send_to_self_fails_before_any_submission(self) -> None:
        with self.assertRaises(SelfTransfer):
            self._intent(Direction.SEND_OUT, P, destination_address=self.sender_address)
        self.assertEqual(self.ledger.submission_count, 0)

    def test_resume_step_out_of_range_is_refused(self) -> None:
        with self.assertRaises(InvalidResumeStep):
            self._receive(resume_step=3)
        self.assertEqual(self.ledger.submission_count, 0)
        self.assertEqual(self.confirmations, [])

    def test_unresponsive_hardware_signer_fails_the_step_unsubmitted(self) -> None:
        release = threading.Event()
        self.addCleanup(release.set)
        signer = HardwareSigner(HangingDevice(release), index=0, timeout=0.05)
        intent = self._intent(Direction.SEND_OUT, X, source=signer.addresses()[0])

        outcome = self._machine().run(intent, self._context(signer))

        self.assertEqual(outcome.state, MachineState.FAILED)
        self.assertEqual(outcome.resume_step, 0)
        self.assertEqual(outcome.results[0].outcome, StepPhase.SIGNER_UNAVAILABLE)
        self.assertFalse(outcome.results[0].submitted)
        self.assertEqual(self.ledger.submission_count, 0)
        self.assertIn("ERROR: step 0 was not submitted to the ledger", outcome.report())

    def test_summary_lists_only_remaining_steps(self) -> None:
        intent = self._intent(
            Direction.RECEIVE_IN,
            P,
            source=self.receiver_address,
            destination_address=self.receiver_address,
        )
        summary = self._machine().summarize(intent, resume_step=2)
        step_lines = [line for line in summary.lines() if line.startswith("- step")]
        self.assertEqual(step_lines, ["- step 2: ImportTx X -> P"])
        self.assertEqual(summary.total_fee, 3 * FEE)


if __name__ == "__main__":
    unittest.main()
