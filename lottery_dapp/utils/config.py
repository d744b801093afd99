"""
Configuration Management
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "blockchain": {
        "rpc_url": "http://localhost:8545",
        "rpc_timeout": 10.0,
        "chain_id": 11155111,
        "network_name": "Sepolia",
        "contract_address": None,
        "abi_path": None,
        "gas_price": None,
        "gas_multiplier": 1.15,
        "tx_timeout": 180,
    },
    "wallet": {
        "private_key": None,
    },
    "lottery": {
        "revalidate_price": False,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 6080,
    },
    "app": {
        "log_level": None,
        "log_file": None,
    },
}

ENV_SECTIONS = {
    "BLOCKCHAIN_": "blockchain",
    "WALLET_": "wallet",
    "LOTTERY_": "lottery",
    "SERVER_": "server",
    "APP_": "app",
}


def default_config_path() -> Path:
    return Path(os.getenv("DAPP_CONFIG", Path.cwd() / "config" / "dapp.conf"))


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from defaults, a JSON file and environment variables"""
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_file) if config_file else default_config_path()
    if path.exists():
        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
            _merge(config, file_config)
            logger.info(f"Loaded configuration from {path}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
    else:
        logger.warning(f"Config file {path} not found. Will only use defaults and environment variables.")

    config = _apply_env_overrides(config)
    logger.debug(f"Configuration after applying environment overrides: {json.dumps(redacted(config), indent=2)}")
    return config


def _merge(config: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides, e.g. BLOCKCHAIN_RPC_URL -> blockchain.rpc_url"""
    for key, value in os.environ.items():
        for prefix, section in ENV_SECTIONS.items():
            if key.startswith(prefix):
                config.setdefault(section, {})[key[len(prefix):].lower()] = value
                break

    return config


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def get_bool(config: Dict[str, Any], key_path: str, default: bool = False) -> bool:
    """Read a flag that may come from JSON (bool) or the environment (string)."""
    value = get_config_value(config, key_path, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def redacted(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``config`` safe to log: private keys are masked."""
    safe = copy.deepcopy(config)
    wallet = safe.get("wallet")
    if isinstance(wallet, dict) and wallet.get("private_key"):
        wallet["private_key"] = "***"
    return safe
