"""Run configuration for one transfer invocation."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger

from transfer_engine.errors import ConfigurationError


@dataclass(frozen=True)
class TransferConfig:
    skip_confirmation: bool = False
    request_timeout_seconds: float = 30.0
    signer_timeout_seconds: float = 120.0
    settle_delay_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("request_timeout_seconds must be positive.")
        if self.signer_timeout_seconds <= 0:
            raise ConfigurationError("signer_timeout_seconds must be positive.")
        if self.settle_delay_seconds < 0:
            raise ConfigurationError("settle_delay_seconds must be non-negative.")


def load_transfer_config(
    path: Optional[Union[str, Path]] = None, **overrides: object
) -> TransferConfig:
    """Build a config from an optional YAML file, then apply keyword overrides.

    Only keys under a top-level ``transfer`` mapping are read; unknown keys
    are rejected.
    """
    values = {}
    if path is not None:
        values.update(_read_yaml(Path(path)))
    values.update({key: value for key, value in overrides.items() if value is not None})

    known = {field.name for field in fields(TransferConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown transfer settings: {', '.join(unknown)}")

    try:
        config = TransferConfig(**values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid transfer settings: {exc}") from exc
    logger.debug(f"Transfer config: {config}")
    return config


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read transfer config {path}: {exc}") from exc

    section = document.get("transfer", {}) if isinstance(document, dict) else None
    if not isinstance(section, dict):
        raise ConfigurationError(f"Transfer config {path} must contain a 'transfer' mapping.")
    return section
