"""Wallet provider boundary: account authorization and transaction signing."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from eth_account import Account
from web3 import Web3

from lottery_dapp.lottery.models import (
    RemoteCallError,
    WalletAuthorizationError,
    WalletUnavailableError,
)
from lottery_dapp.utils.logger import get_logger

logger = get_logger(__name__)


class TransactionRevertedError(RemoteCallError):
    """A mined transaction ended with status 0."""


class WalletSigner:
    """An authorized account able to send transactions through ``w3``."""

    def __init__(
        self,
        w3: Web3,
        address: str,
        *,
        account: Optional[Any] = None,
        chain_id: Optional[int] = None,
        gas_multiplier: float = 1.15,
        gas_price_override: Optional[int] = None,
    ) -> None:
        self.w3 = w3
        self.address = address
        self._account = account
        self.chain_id = chain_id
        self._gas_multiplier = gas_multiplier
        self._gas_price_override = gas_price_override

    @property
    def is_local(self) -> bool:
        """True when transactions are signed here rather than by the node."""
        return self._account is not None

    async def get_address(self) -> str:
        return self.address

    async def get_balance(self, address: str) -> int:
        def _fetch() -> int:
            return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))

        return await asyncio.to_thread(_fetch)

    async def send_transaction(self, tx_function: Any, value: int = 0) -> str:
        """Send a bound contract function call carrying ``value`` wei."""
        if self._account is None:
            def _transact() -> str:
                tx_hash = tx_function.transact({"from": self.address, "value": value})
                return Web3.to_hex(tx_hash)

            tx_hash = await asyncio.to_thread(_transact)
            logger.info("Node-signed transaction %s from %s", tx_hash, self.address)
            return tx_hash

        def _send() -> str:
            gas_estimate = tx_function.estimate_gas({"from": self.address, "value": value})
            gas_price = self._gas_price_override or self.w3.eth.gas_price
            txn = tx_function.build_transaction(
                {
                    "from": self.address,
                    "value": value,
                    "gas": int(gas_estimate * self._gas_multiplier),
                    "gasPrice": gas_price,
                    "nonce": self.w3.eth.get_transaction_count(self.address),
                    "chainId": self.chain_id if self.chain_id is not None else self.w3.eth.chain_id,
                }
            )
            signed = self._account.sign_transaction(txn)
            # web3 v6 exposes rawTransaction, v7 raw_transaction
            raw = getattr(signed, "raw_transaction", None)
            if raw is None:
                raw = signed.rawTransaction
            tx_hash = self.w3.eth.send_raw_transaction(raw)
            return Web3.to_hex(tx_hash)

        tx_hash = await asyncio.to_thread(_send)
        logger.info("Sent transaction %s from %s", tx_hash, self.address)
        return tx_hash

    async def wait_for_transaction(self, tx_hash: str, timeout: int = 180) -> Dict[str, Any]:
        def _wait() -> Dict[str, Any]:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
            return {
                "status": int(receipt["status"]),
                "blockNumber": int(receipt["blockNumber"]),
                "transactionHash": Web3.to_hex(receipt["transactionHash"]),
                "gasUsed": int(receipt["gasUsed"]),
            }

        receipt = await asyncio.to_thread(_wait)
        if receipt["status"] != 1:
            raise TransactionRevertedError(f"Transaction {tx_hash} reverted in block {receipt['blockNumber']}")
        logger.info("Transaction %s confirmed in block %s", tx_hash, receipt["blockNumber"])
        return receipt


class WalletProvider:
    """Connects to the configured RPC endpoint and hands out a signer.

    With ``wallet.private_key`` set, the key is the authorized account and
    transactions are signed locally. Otherwise the node is asked for its
    accounts (``eth_requestAccounts``, then ``eth_accounts``) and signs them.
    """

    def __init__(self, config: Dict[str, Any], web3_factory: Optional[Callable[[], Web3]] = None):
        blockchain_cfg = config.get("blockchain", {})
        wallet_cfg = config.get("wallet", {})

        self.rpc_url: Optional[str] = blockchain_cfg.get("rpc_url")
        try:
            self.rpc_timeout = float(blockchain_cfg.get("rpc_timeout") or 10.0)
        except (TypeError, ValueError):
            self.rpc_timeout = 10.0
        chain_id = blockchain_cfg.get("chain_id")
        self.chain_id: Optional[int] = int(chain_id) if chain_id else None
        self._gas_multiplier = float(blockchain_cfg.get("gas_multiplier") or 1.15)

        self._gas_price_override: Optional[int] = None
        gas_price_setting = blockchain_cfg.get("gas_price")
        if gas_price_setting:
            try:
                self._gas_price_override = Web3.to_wei(Decimal(str(gas_price_setting)), "gwei")
            except ArithmeticError as exc:
                logger.warning("Unable to parse gas price '%s': %s", gas_price_setting, exc)

        private_key = wallet_cfg.get("private_key")
        self._account = Account.from_key(private_key) if private_key else None
        if self._account:
            logger.info("Local wallet account loaded: %s", self._account.address)

        self._web3_factory = web3_factory or self._default_web3

    def _default_web3(self) -> Web3:
        return Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.rpc_timeout}))

    async def request_accounts(self) -> WalletSigner:
        """Ask for account authorization and return a signer for the first account."""
        if not self.rpc_url:
            raise WalletUnavailableError("No wallet RPC endpoint configured")

        def _connect():
            w3 = self._web3_factory()
            if not w3.is_connected():
                raise WalletUnavailableError(f"Wallet provider at {self.rpc_url} is not reachable")
            if self._account is not None:
                return w3, self._account.address
            accounts = self._node_accounts(w3)
            if not accounts:
                raise WalletAuthorizationError("Wallet did not grant access to any account")
            return w3, Web3.to_checksum_address(accounts[0])

        w3, address = await asyncio.to_thread(_connect)
        logger.info("Wallet authorized account %s", address)
        return WalletSigner(
            w3,
            address,
            account=self._account,
            chain_id=self.chain_id,
            gas_multiplier=self._gas_multiplier,
            gas_price_override=self._gas_price_override,
        )

    @staticmethod
    def _node_accounts(w3: Web3) -> List[str]:
        response = w3.provider.make_request("eth_requestAccounts", [])
        error = response.get("error")
        if error:
            # plain JSON-RPC nodes reject eth_requestAccounts; 4001 is an explicit user refusal
            if isinstance(error, dict) and error.get("code") == 4001:
                raise WalletAuthorizationError(error.get("message", "User rejected the request"))
            logger.debug("eth_requestAccounts unsupported (%s); falling back to eth_accounts", error)
            return list(w3.eth.accounts)
        return list(response.get("result") or [])
