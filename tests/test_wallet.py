"""
Tests for the wallet provider boundary
"""
import asyncio
from unittest.mock import Mock

import pytest
from eth_account import Account
from web3 import Web3

from lottery_dapp.blockchain.wallet import TransactionRevertedError, WalletProvider, WalletSigner
from lottery_dapp.lottery.models import WalletAuthorizationError, WalletUnavailableError

# well-known development key (first account of the default hardhat/anvil mnemonic)
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
LOTTERY_ADDRESS = Web3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")


def make_w3(connected=True, response=None, accounts=()):
    w3 = Mock()
    w3.is_connected.return_value = connected
    w3.provider.make_request.return_value = response if response is not None else {"result": []}
    w3.eth.accounts = list(accounts)
    return w3


def make_local_signer(gas_price_override=None):
    w3 = Mock()
    w3.eth.gas_price = 2 * 10**9
    w3.eth.get_transaction_count.return_value = 5
    w3.eth.send_raw_transaction.return_value = b"\x04" * 32
    tx_function = Mock()
    tx_function.estimate_gas.return_value = 100000
    tx_function.build_transaction.side_effect = lambda params: {**params, "to": LOTTERY_ADDRESS, "data": "0x"}
    signer = WalletSigner(
        w3,
        DEV_ADDRESS,
        account=Account.from_key(DEV_KEY),
        chain_id=31337,
        gas_price_override=gas_price_override,
    )
    return signer, w3, tx_function


def provider_for(w3, **wallet_cfg):
    config = {"blockchain": {"rpc_url": "http://localhost:8545", "chain_id": 31337}, "wallet": wallet_cfg}
    return WalletProvider(config, web3_factory=lambda: w3)


class TestRequestAccounts:
    def test_missing_rpc_url_is_environment_error(self):
        provider = WalletProvider({"blockchain": {"rpc_url": None}})
        with pytest.raises(WalletUnavailableError):
            asyncio.run(provider.request_accounts())

    def test_unreachable_node_is_environment_error(self):
        provider = provider_for(make_w3(connected=False))
        with pytest.raises(WalletUnavailableError):
            asyncio.run(provider.request_accounts())

    def test_granted_account_is_checksummed(self):
        w3 = make_w3(response={"result": [DEV_ADDRESS.lower()]})
        signer = asyncio.run(provider_for(w3).request_accounts())
        assert asyncio.run(signer.get_address()) == DEV_ADDRESS
        assert not signer.is_local

    def test_user_rejection_is_authorization_error(self):
        w3 = make_w3(response={"error": {"code": 4001, "message": "User rejected the request."}})
        with pytest.raises(WalletAuthorizationError):
            asyncio.run(provider_for(w3).request_accounts())

    def test_falls_back_to_node_accounts(self):
        w3 = make_w3(response={"error": {"code": -32601, "message": "method not found"}}, accounts=[DEV_ADDRESS])
        signer = asyncio.run(provider_for(w3).request_accounts())
        assert signer.address == DEV_ADDRESS

    def test_no_accounts_is_authorization_error(self):
        w3 = make_w3(response={"error": {"code": -32601, "message": "method not found"}})
        with pytest.raises(WalletAuthorizationError):
            asyncio.run(provider_for(w3).request_accounts())

    def test_private_key_account_signs_locally(self):
        w3 = make_w3()
        signer = asyncio.run(provider_for(w3, private_key=DEV_KEY).request_accounts())
        assert signer.address == DEV_ADDRESS
        assert signer.is_local
        w3.provider.make_request.assert_not_called()


class TestSigner:
    def test_node_signed_transaction_carries_value(self):
        w3 = Mock()
        tx_function = Mock()
        tx_function.transact.return_value = b"\x01" * 32
        signer = WalletSigner(w3, DEV_ADDRESS)

        tx_hash = asyncio.run(signer.send_transaction(tx_function, value=10**16))

        assert tx_hash == "0x" + "01" * 32
        tx_function.transact.assert_called_once_with({"from": DEV_ADDRESS, "value": 10**16})

    def test_reverted_receipt_raises(self):
        w3 = Mock()
        w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "blockNumber": 7,
            "transactionHash": b"\x02" * 32,
            "gasUsed": 30000,
        }
        signer = WalletSigner(w3, DEV_ADDRESS)
        with pytest.raises(TransactionRevertedError):
            asyncio.run(signer.wait_for_transaction("0x" + "02" * 32))

    def test_successful_receipt_is_summarized(self):
        w3 = Mock()
        w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1,
            "blockNumber": 8,
            "transactionHash": b"\x03" * 32,
            "gasUsed": 50000,
        }
        signer = WalletSigner(w3, DEV_ADDRESS)
        receipt = asyncio.run(signer.wait_for_transaction("0x" + "03" * 32, timeout=5))
        assert receipt == {"status": 1, "blockNumber": 8, "transactionHash": "0x" + "03" * 32, "gasUsed": 50000}
        w3.eth.wait_for_transaction_receipt.assert_called_once_with("0x" + "03" * 32, timeout=5)

    def test_local_key_signs_value_and_padded_gas(self):
        signer, w3, tx_function = make_local_signer()

        tx_hash = asyncio.run(signer.send_transaction(tx_function, value=10**16))

        assert tx_hash == "0x" + "04" * 32
        tx_function.estimate_gas.assert_called_once_with({"from": DEV_ADDRESS, "value": 10**16})
        params = tx_function.build_transaction.call_args[0][0]
        assert params["value"] == 10**16
        assert params["gas"] == int(100000 * 1.15)
        assert params["gasPrice"] == 2 * 10**9
        assert params["nonce"] == 5
        assert params["chainId"] == 31337

        raw = w3.eth.send_raw_transaction.call_args[0][0]
        assert Account.recover_transaction(raw) == DEV_ADDRESS

    def test_local_key_uses_configured_gas_price(self):
        signer, w3, tx_function = make_local_signer(gas_price_override=7 * 10**9)

        asyncio.run(signer.send_transaction(tx_function))

        params = tx_function.build_transaction.call_args[0][0]
        assert params["gasPrice"] == 7 * 10**9
        assert params["value"] == 0
        raw = w3.eth.send_raw_transaction.call_args[0][0]
        assert Account.recover_transaction(raw) == DEV_ADDRESS
