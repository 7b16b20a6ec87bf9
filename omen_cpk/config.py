"""
Omen CPK SDK - Configuration

Defaults, per-network contract addresses, and config loading
(JSON file + environment variables).
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from web3 import Web3

from .cpk_types import NATIVE_ADDRESS, Token
from .errors import PreconditionError

log = logging.getLogger("omen_cpk.config")

# ============ CONFIGURATION ============

DEFAULT_CONFIG: Dict[str, Any] = {
    # Chain RPC
    "rpc_url": "http://127.0.0.1:8545",
    "request_timeout": 30,

    # Signing key of the proxy owner (NEVER commit!)
    "private_key": "",

    # Submission
    "gas_buffer": 1.2,              # Multiplier applied to gas estimates
    "confirmation_timeout": 300,    # Seconds to wait for inclusion

    # Proxy account
    "target_safe_implementation": "0x34CfAC646f301356fAa8B21e94227e3583Fe3F5F",  # Gnosis Safe 1.1.1

    # Realitio questions
    "single_select_template_id": 2,
    "question_language": "en_US",
    "realitio_timeout": None,       # Per-network default when None

    # Per-network overrides, merged over NETWORKS: {"<chain_id>": {"contracts": {...}}}
    "networks": {},
}

NETWORKS: Dict[int, Dict[str, Any]] = {
    # Ethereum mainnet
    1: {
        "realitio_timeout": 86400,
        "contracts": {
            "conditionalTokens": "0xC59b0e4De5F1248C1140964E0fF287B192407E0C",
            "marketMakerFactory": "0x89023DEb1d9a9a62fF3A5ca8F23Be8d87A576220",
            "realitio": "0x325a2e0F3CCA2ddbaeBB4DfC38Df8D19ca165b47",
            "oracle": "0x0e414d014A77971f4EAA22AB58E6d84D16Ea838E",
            "proxyFactory": "0x0fB4340432e56c014fa96286de17222822a9281b",
            "multiSend": "0xB522a9f781924eD250A11C54105E51840B138AdD",
            "fallbackHandler": "0x40A930851BD2e590Bd5A5C981b436de25742E980",
            "masterCopy": "0x34CfAC646f301356fAa8B21e94227e3583Fe3F5F",
        },
        "tokens": {
            "weth": {"address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "symbol": "WETH", "decimals": 18},
            "dai": {"address": "0x6B175474E89094C44Da98b954EedeAC495271d0F", "symbol": "DAI", "decimals": 18},
            "usdc": {"address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "symbol": "USDC", "decimals": 6},
        },
    },
}

ENV_OVERRIDES = {
    "CPK_RPC_URL": "rpc_url",
    "CPK_PRIVATE_KEY": "private_key",
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration.

    Order (later wins): DEFAULT_CONFIG, JSON file at `path` (or $CPK_CONFIG),
    environment variables listed in ENV_OVERRIDES.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = path or os.environ.get("CPK_CONFIG")
    if path:
        config_path = Path(os.path.expanduser(path))
        if config_path.exists():
            config = _merge(config, json.loads(config_path.read_text()))
            log.info(f"Loaded config from {config_path}")
        else:
            log.warning(f"Config file {config_path} not found, using defaults")

    for env_name, key in ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            config[key] = os.environ[env_name]

    return config


def get_network(config: Dict[str, Any], chain_id: int) -> Dict[str, Any]:
    """Built-in network settings merged with the config's overrides."""
    base = NETWORKS.get(chain_id, {})
    override = config.get("networks", {}).get(str(chain_id), {})
    network = _merge(base, override)
    if not network:
        raise PreconditionError(f"Unsupported network: chain id {chain_id}")
    return network


def get_contract_address(config: Dict[str, Any], chain_id: int, name: str) -> str:
    contracts = get_network(config, chain_id).get("contracts", {})
    if name not in contracts:
        raise PreconditionError(f"No '{name}' contract configured for chain id {chain_id}")
    return Web3.to_checksum_address(contracts[name])


def get_token(config: Dict[str, Any], chain_id: int, symbol: str) -> Token:
    tokens = get_network(config, chain_id).get("tokens", {})
    info = tokens.get(symbol.lower())
    if not info:
        raise PreconditionError(f"No '{symbol}' token configured for chain id {chain_id}")
    return Token(
        address=Web3.to_checksum_address(info["address"]),
        symbol=info.get("symbol", symbol.upper()),
        decimals=int(info.get("decimals", 18)),
    )


def get_realitio_timeout(config: Dict[str, Any], chain_id: int) -> int:
    if config.get("realitio_timeout"):
        return int(config["realitio_timeout"])
    return int(get_network(config, chain_id).get("realitio_timeout", 86400))


def native_token(symbol: str = "ETH") -> Token:
    return Token(address=NATIVE_ADDRESS, symbol=symbol, decimals=18)
