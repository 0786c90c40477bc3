"""Network resolution: endpoints and genesis fee per supported network."""

from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from loguru import logger

from transfer_engine.errors import ConfigurationError
from transfer_engine.models import ChainClass

from .models import ChainEndpoint, NetworkSettings

MILLI_UNIT = 1_000_000

_BUILTIN_NETWORKS: Dict[str, Dict[str, object]] = {
    "mainnet": {
        "network_id": 1,
        "endpoint": "https://api.metalblockchain.org",
        "hrp": "metal",
        "tx_fee": MILLI_UNIT,
    },
    "tahoe": {
        "network_id": 5,
        "endpoint": "https://tahoe.metalblockchain.org",
        "hrp": "tahoe",
        "tx_fee": MILLI_UNIT,
    },
    "local": {
        "network_id": 12345,
        "endpoint": "http://127.0.0.1:9650",
        "hrp": "local",
        "tx_fee": MILLI_UNIT,
    },
    "devnet": {
        "network_id": 1338,
        "endpoint": "http://127.0.0.1:9650",
        "hrp": "custom",
        "tx_fee": MILLI_UNIT,
    },
}

SUPPORTED_NETWORKS = tuple(_BUILTIN_NETWORKS)


def resolve_network(
    name: str, overrides_path: Optional[Union[str, Path]] = None
) -> NetworkSettings:
    """Resolve a network name into chain endpoints and the genesis fee.

    ``overrides_path`` points at a YAML document shaped like::

        networks:
          devnet:
            endpoint: http://10.0.0.5:9650
            network_id: 4242
            tx_fee: 1000000

    Entries in the file replace the built-in values key by key and may also
    declare networks that are not built in.
    """
    key = name.strip().lower()
    definitions = {network: dict(values) for network, values in _BUILTIN_NETWORKS.items()}

    if overrides_path is not None:
        for network, values in _load_overrides(Path(overrides_path)).items():
            definitions.setdefault(network, {}).update(values)

    if key not in definitions:
        raise ConfigurationError(
            f"Unsupported network '{name}'; expected one of: {', '.join(sorted(definitions))}."
        )

    settings = _build_settings(key, definitions[key])
    logger.debug(f"Resolved network '{key}' to {settings.api_endpoint} (id {settings.network_id})")
    return settings


def _build_settings(name: str, values: Dict[str, object]) -> NetworkSettings:
    try:
        endpoint = str(values["endpoint"]).rstrip("/")
        network_id = int(values["network_id"])
        hrp = str(values.get("hrp", "custom"))
        tx_fee = int(values["tx_fee"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Network '{name}' is missing or has invalid settings: {exc}") from exc

    if tx_fee < 0:
        raise ConfigurationError(f"Network '{name}' has a negative tx_fee.")

    return NetworkSettings(
        name=name,
        network_id=network_id,
        api_endpoint=endpoint,
        hrp=hrp,
        tx_fee=tx_fee,
        endpoints={
            chain: ChainEndpoint(
                network=name,
                chain=chain,
                uri=f"{endpoint}/ext/bc/{chain.alias}",
            )
            for chain in ChainClass
        },
    )


def _load_overrides(path: Path) -> Dict[str, Dict[str, object]]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read network config {path}: {exc}") from exc

    networks = document.get("networks", {}) if isinstance(document, dict) else None
    if not isinstance(networks, dict):
        raise ConfigurationError(f"Network config {path} must contain a 'networks' mapping.")

    overrides = {}
    for name, values in networks.items():
        if not isinstance(values, dict):
            raise ConfigurationError(f"Network '{name}' in {path} must be a mapping.")
        overrides[str(name).lower()] = values
    logger.info(f"Loaded network overrides for {sorted(overrides)} from {path}")
    return overrides
