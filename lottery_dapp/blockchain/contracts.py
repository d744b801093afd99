"""
Lottery contract interface description (ABI) loading
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_ABI_PATH = Path(__file__).parent.parent / "contracts" / "abi" / "Lottery.abi"

REQUIRED_FUNCTIONS = (
    "buyTicket",
    "pickWinner",
    "getPlayers",
    "lastWinner",
    "s_lotteryState",
    "i_ticketPrice",
    "owner",
)


def resolve_abi_path(abi_path: Optional[str] = None) -> Path:
    """Resolve the ABI path, preferring an explicitly configured file."""
    candidates = [Path(abi_path)] if abi_path else []
    candidates.append(DEFAULT_ABI_PATH)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise FileNotFoundError("Lottery ABI file not found in expected locations")


def load_lottery_abi(abi_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Load the Lottery ABI and check it exposes every function the client calls"""
    path = resolve_abi_path(abi_path)
    logger.info("Loading Lottery ABI from %s", path)
    with path.open("r", encoding="utf-8") as handle:
        abi = json.load(handle)

    names = {item.get("name") for item in abi if item.get("type") == "function"}
    missing = [name for name in REQUIRED_FUNCTIONS if name not in names]
    if missing:
        raise ValueError(f"Lottery ABI at {path} is missing functions: {', '.join(missing)}")

    logger.info(f"Loaded ABI with {len(abi)} items")
    return abi
