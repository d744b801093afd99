"""Contract handle for the deployed lottery."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3
from web3.contract import Contract

from lottery_dapp.blockchain.contracts import load_lottery_abi
from lottery_dapp.blockchain.wallet import WalletSigner
from lottery_dapp.utils.logger import get_logger

logger = get_logger(__name__)


class LotteryContract:
    """Async wrapper binding the lottery address, its ABI and an active signer."""

    def __init__(self, address: str, abi: List[Dict[str, Any]], signer: WalletSigner):
        self.address = Web3.to_checksum_address(address)
        self.abi = abi
        self.signer = signer
        self._contract: Contract = signer.w3.eth.contract(address=self.address, abi=abi)
        logger.info("Contract bound at %s for signer %s", self.address, signer.address)

    async def _call_view(self, function_name: str, *args) -> Any:
        def _call():
            return getattr(self._contract.functions, function_name)(*args).call()

        return await asyncio.to_thread(_call)

    async def _send_transaction(self, function_name: str, *args, value: int = 0) -> str:
        tx_function = getattr(self._contract.functions, function_name)(*args)
        tx_hash = await self.signer.send_transaction(tx_function, value=value)
        logger.info("Sent transaction %s for %s", tx_hash, function_name)
        return tx_hash

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_balance(self) -> int:
        """Balance of the contract address, read through the signer's provider."""
        return await self.signer.get_balance(self.address)

    async def get_players(self) -> List[str]:
        return list(await self._call_view("getPlayers"))

    async def get_last_winner(self) -> str:
        return await self._call_view("lastWinner")

    async def is_lottery_open(self) -> bool:
        return bool(await self._call_view("s_lotteryState"))

    async def get_ticket_price(self) -> int:
        return int(await self._call_view("i_ticketPrice"))

    async def get_owner(self) -> str:
        return await self._call_view("owner")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def buy_ticket(self, value: int) -> str:
        return await self._send_transaction("buyTicket", value=value)

    async def pick_winner(self) -> str:
        return await self._send_transaction("pickWinner")

    async def wait_for_transaction(self, tx_hash: str, timeout: int = 180) -> Dict[str, Any]:
        return await self.signer.wait_for_transaction(tx_hash, timeout=timeout)


def make_contract_factory(config: Dict[str, Any]) -> Callable[[WalletSigner], LotteryContract]:
    """Return a callable that binds the configured lottery to a signer.

    The ABI is read once, up front; a missing contract address surfaces when
    the factory is first used so the page can still be served.
    """
    blockchain_cfg = config.get("blockchain", {})
    address: Optional[str] = blockchain_cfg.get("contract_address")
    abi = load_lottery_abi(blockchain_cfg.get("abi_path"))

    def _factory(signer: WalletSigner) -> LotteryContract:
        if not address:
            raise ValueError("No lottery contract address configured (blockchain.contract_address)")
        return LotteryContract(address, abi, signer)

    return _factory
