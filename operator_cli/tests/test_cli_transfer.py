"""End-to-end tests for the transfer and key commands."""

import json
import threading
import unittest
from contextlib import redirect_stderr, redirect_stdout
from io import StringIO

from execution_adapter.primary_network.simulator import Fault, SimulatedLedger
from operator_cli.cli import CliRuntime, main
from transfer_engine.models import ChainClass

P = ChainClass.PRIMARY
X = ChainClass.SECONDARY
FEE = 1_000_000
ONE = 1_000_000_000
KEYSTORE = "mem://transfer"


class FakeDevice:
    def __init__(self, address: str) -> None:
        self._address = address
        self.signed = threading.Event()

    def addresses(self, indices):
        return tuple(f"P-local1{self._address}" for _ in indices)

    def sign(self, payload: bytes, index: int) -> str:
        self.signed.set()
        return f"device-{index}"


class OperatorCliTransferTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = SimulatedLedger(network_id=12345, fee=FEE)
        self.answers = []
        self.prompts = []
        self.runtime = CliRuntime(
            client_factory=lambda settings: self.ledger.clients(),
            input_fn=self._answer,
            secret_fn=self._answer,
            sleep=lambda seconds: None,
        )
        self.alice = self._create_key("alice")
        self.bob = self._create_key("bob")

    def _answer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answers.pop(0)

    def _run(self, args):
        out_buf = StringIO()
        err_buf = StringIO()
        with redirect_stdout(out_buf), redirect_stderr(err_buf):
            code = main(["--log-level", "WARNING"] + args, runtime=self.runtime)
        return code, out_buf.getvalue(), err_buf.getvalue()

    def _create_key(self, name: str) -> str:
        code, output, _ = self._run(
            ["key", "create", "--keystore", KEYSTORE, "--name", name, "--passphrase", "pw"]
        )
        self.assertEqual(code, 0)
        return output.split()[1]

    def _transfer(self, *extra):
        return self._run(
            ["transfer", "--network", "local", "--keystore", KEYSTORE, "--passphrase", "pw"]
            + list(extra)
        )

    def test_key_list_json(self) -> None:
        code, output, _ = self._run(["key", "list", "--keystore", KEYSTORE, "--json"])
        self.assertEqual(code, 0)
        rows = json.loads(output)
        self.assertEqual([row["name"] for row in rows], ["alice", "bob"])
        self.assertEqual(rows[0]["p_chain"], f"P-local1{self.alice}")
        self.assertEqual(rows[0]["x_chain"], f"X-local1{self.alice}")

    def test_forced_send_then_receive_settles(self) -> None:
        self.ledger.fund(P, self.alice, 3 * ONE)
        code, output, _ = self._transfer(
            "-s", "--fund-p-chain", "-k", "alice", "-a", f"P-local1{self.bob}", "-o", "1", "--force"
        )
        self.assertEqual(code, 0)
        self.assertIn("- debit a total of 1.004000000", output)
        self.assertEqual(self.ledger.balance(P, self.alice), 2 * ONE - 4 * FEE)

        code, output, _ = self._transfer("-g", "--fund-p-chain", "-k", "bob", "-o", "1", "--force")
        self.assertEqual(code, 0)
        self.assertIn("SETTLED", output)
        self.assertEqual(self.ledger.balance(P, self.bob), ONE)
        self.assertEqual(self.prompts, [])

    def test_declined_confirmation_cancels(self) -> None:
        self.ledger.fund(P, self.alice, 3 * ONE)
        self.answers = ["n"]
        code, output, _ = self._transfer(
            "-s", "--fund-x-chain", "-k", "alice", "-a", self.bob, "-o", "1"
        )
        self.assertEqual(code, 0)
        self.assertIn("Cancelled", output)
        self.assertEqual(self.ledger.submission_count, 0)
        self.assertEqual(
            self.prompts, ["Confirm transfer of 1.000000000 (debits 1.002000000) [y/N]: "]
        )

    def test_missing_choices_are_prompted(self) -> None:
        self.ledger.fund(P, self.alice, 3 * ONE)
        self.answers = ["Send", "X-Chain", "0.5", self.bob, "y"]
        code, _, _ = self._run(
            ["transfer", "--network", "local", "--keystore", KEYSTORE, "--passphrase", "pw",
             "-k", "alice"]
        )
        self.assertEqual(code, 0)
        self.assertEqual(self.ledger.pending_import(X, self.bob), ONE // 2 + FEE)

    def test_failed_receive_prints_resume_flag_and_exit_code(self) -> None:
        self.ledger.fund(P, self.alice, 3 * ONE)
        self._transfer("-s", "--fund-p-chain", "-k", "alice", "-a", self.bob, "-o", "1", "--force")
        self.ledger.inject(X, Fault.REJECT, after=1)

        code, output, _ = self._transfer("-g", "--fund-p-chain", "-k", "bob", "-o", "1", "--force")
        self.assertEqual(code, 1)
        self.assertIn("--receive-recovery-step 1", output)

        code, output, _ = self._transfer(
            "-g", "--fund-p-chain", "-k", "bob", "-o", "1", "--force", "-r", "1"
        )
        self.assertEqual(code, 0)
        self.assertEqual(self.ledger.balance(P, self.bob), ONE)

    def test_hardware_signer_via_device_opener(self) -> None:
        device = FakeDevice("ef" * 20)
        self.runtime.device_opener = lambda: device
        self.ledger.fund(P, "ef" * 20, 3 * ONE)

        code, _, _ = self._transfer("-s", "--fund-x-chain", "-i", "0", "-a", self.bob, "-o", "1", "--force")
        self.assertEqual(code, 0)
        self.assertTrue(device.signed.is_set())

    def test_usage_errors_exit_with_code_two(self) -> None:
        cases = [
            (["-s", "-g", "--fund-p-chain", "-k", "alice", "-o", "1"], "only one of --send"),
            (
                ["-s", "--fund-p-chain", "--fund-x-chain", "-k", "alice", "-o", "1"],
                "only one of --fund-p-chain",
            ),
            (
                ["-s", "--fund-p-chain", "-k", "alice", "-i", "0", "-o", "1"],
                "only one between a key name or a ledger index",
            ),
            (["-g", "--fund-x-chain", "-k", "bob", "-o", "1", "-r", "1"], "Resume step 1"),
            (["-s", "--fund-p-chain", "-k", "alice", "-a", self.bob, "-o", "0"], "greater than zero"),
            (
                ["-s", "--fund-p-chain", "-k", "alice", "-a", self.alice, "-o", "1", "--force"],
                "same as the receiver",
            ),
            (["-s", "--fund-x-chain", "-k", "alice", "-a", "nope", "-o", "1"], "Invalid address"),
        ]
        for args, message in cases:
            with self.subTest(args=args):
                code, _, error = self._transfer(*args)
                self.assertEqual(code, 2)
                self.assertIn("ERROR:", error)
                self.assertIn(message, error)
        self.assertEqual(self.ledger.submission_count, 0)

    def test_wrong_passphrase_is_reported(self) -> None:
        code, _, error = self._run(
            ["transfer", "--network", "local", "--keystore", KEYSTORE, "--passphrase", "bad",
             "-s", "--fund-x-chain", "-k", "alice", "-a", self.bob, "-o", "1"]
        )
        self.assertEqual(code, 2)
        self.assertIn("could not be unlocked", error)


if __name__ == "__main__":
    unittest.main()
