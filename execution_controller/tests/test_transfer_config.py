"""Tests for loading run configuration."""

import tempfile
import unittest
from pathlib import Path

from execution_controller.config import TransferConfig, load_transfer_config
from transfer_engine.errors import ConfigurationError


class TransferConfigTests(unittest.TestCase):
    def _write(self, tempdir: str, text: str) -> Path:
        path = Path(tempdir) / "transfer.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_defaults(self) -> None:
        config = load_transfer_config()
        self.assertEqual(config, TransferConfig())
        self.assertFalse(config.skip_confirmation)
        self.assertEqual(config.settle_delay_seconds, 2.0)

    def test_yaml_values_and_overrides(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            path = self._write(
                tempdir,
                "transfer:\n  request_timeout_seconds: 10\n  settle_delay_seconds: 0\n",
            )
            config = load_transfer_config(path, skip_confirmation=True, settle_delay_seconds=None)

        self.assertTrue(config.skip_confirmation)
        self.assertEqual(config.request_timeout_seconds, 10)
        self.assertEqual(config.settle_delay_seconds, 0)

    def test_unknown_keys_are_refused(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            path = self._write(tempdir, "transfer:\n  retries: 3\n")
            with self.assertRaises(ConfigurationError):
                load_transfer_config(path)

    def test_invalid_values_are_refused(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_transfer_config(request_timeout_seconds=0)
        with self.assertRaises(ConfigurationError):
            TransferConfig(settle_delay_seconds=-1)

    def test_missing_file_is_a_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_transfer_config("/nonexistent/transfer.yaml")


if __name__ == "__main__":
    unittest.main()
