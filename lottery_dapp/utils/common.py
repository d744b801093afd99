"""Common helpers for addresses and currency amounts."""

from decimal import Decimal, localcontext

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def shorten_eth_address(address: str) -> str:
    """Shorten an Ethereum address for display: '0x123456...abcd'.
    Returns the first 6 and last 4 hex characters, separated by '...'.
    Handles addresses with or without '0x' prefix.
    """
    if not address:
        return ""
    addr = address.lower()
    if addr.startswith("0x"):
        addr = addr[2:]
    if len(addr) < 10:
        return f"0x{addr}"
    return f"0x{addr[:6]}...{addr[-4:]}"


def is_zero_address(address: str) -> bool:
    """True when ``address`` is the all-zero "unset" address."""
    return isinstance(address, str) and address.lower() == ZERO_ADDRESS


def same_address(left, right) -> bool:
    if not left or not right:
        return False
    return str(left).lower() == str(right).lower()


def format_ether(wei: int) -> str:
    """Render a wei amount as a decimal ether string ('0.01', '0.0', '10.0')."""
    value = Decimal(Web3.from_wei(int(wei), "ether"))
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if "." not in text:
        text += ".0"
    return text


def parse_ether(amount: str) -> int:
    """Convert a decimal ether string typed by the user to wei.

    Raises ValueError for empty, malformed, non-finite or negative input, and for
    amounts with more than 18 decimal places.
    """
    text = str(amount).strip()
    if not text:
        raise ValueError("Amount is empty")
    try:
        value = Decimal(text)
    except ArithmeticError as exc:
        raise ValueError(f"Invalid amount '{amount}'") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount '{amount}'")
    # one wei is 1e-18 ether; finer amounts cannot be sent as typed
    with localcontext() as ctx:
        ctx.prec = 200
        fractional_wei = value.scaleb(18) % 1
    if fractional_wei != 0:
        raise ValueError(f"Too many decimals in amount '{amount}'")
    return int(Web3.to_wei(value, "ether"))
