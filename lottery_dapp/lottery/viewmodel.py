"""View-model for the lottery page.

Holds the state the page renders and the four user actions that change it:
connect, reload, buy_ticket and pick_winner. Every remote failure is caught
at the handler boundary, logged with full detail and turned into a plain
status message; handlers return an ``ActionOutcome`` instead of raising.

Handlers run on the asyncio loop that owns the view-model. Overlapping
handlers are not serialized: whichever read or write completes last wins.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from lottery_dapp.lottery.models import (
    NO_WINNER,
    ActionOutcome,
    LotteryClientError,
    LotteryViewState,
    PreconditionError,
    RemoteCallError,
    Role,
    SessionPhase,
    WalletUnavailableError,
)
from lottery_dapp.utils.common import (
    format_ether,
    is_zero_address,
    parse_ether,
    same_address,
    shorten_eth_address,
)
from lottery_dapp.utils.config import get_bool, get_config_value
from lottery_dapp.utils.logger import get_logger

logger = get_logger(__name__)

WALLET_MISSING_ALERT = "Wallet provider not available!"
CONNECT_FIRST_ALERT = "Connect wallet first!"
LOTTERY_CLOSED_ALERT = "Lottery is currently picking a winner. Please wait."

CONNECTED_STATUS = "Wallet connected successfully!"
CONNECT_ERROR_STATUS = "Error connecting wallet. Check console."
LOAD_ERROR_STATUS = "Error loading info. Check console details."
BUY_PENDING_STATUS = "Confirming ticket purchase..."
BUY_DONE_STATUS = "Ticket purchased successfully! Refreshing info..."
BUY_ERROR_STATUS = "Error buying ticket. Ensure you have {network} ETH."
NOT_OWNER_STATUS = "Error: Only the contract owner can pick the winner."
PICK_PENDING_STATUS = "Requesting random winner from Chainlink... (This takes ~60 seconds)"
PICK_DONE_STATUS = "Request Sent! Wait 1 minute for Chainlink, then click 'Refresh Info'."
PICK_ERROR_STATUS = "Error picking winner. Check console."
PRICE_CHANGED_STATUS = "Ticket price is now {price} ETH. Review the amount and try again."


class LotteryViewModel:
    """Single owned state object for one session of the lottery page."""

    def __init__(
        self,
        wallet: Any,
        contract_factory: Callable[[Any], Any],
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        config = config or {}
        self.state = LotteryViewState()
        self._wallet = wallet
        self._contract_factory = contract_factory
        self._listeners: Dict[str, List[Callable[[dict | None], None]]] = defaultdict(list)
        self.network_name: str = get_config_value(config, "blockchain.network_name", "Sepolia")
        self._tx_timeout = int(get_config_value(config, "blockchain.tx_timeout", 180))
        self._revalidate_price = get_bool(config, "lottery.revalidate_price", False)

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[dict | None], None]) -> None:
        self._listeners[event_type].append(callback)
        logger.debug("Adding listener for event_type=%s", event_type)

    def _emit(self, event_type: str, payload: dict | None) -> None:
        for callback in list(self._listeners.get(event_type, [])):
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Listener for %s failed: %s", event_type, exc)

    def _set(self, **fields: Any) -> None:
        for name, value in fields.items():
            setattr(self.state, name, value)
        self._emit("state_update", self.snapshot())

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def role(self) -> Optional[Role]:
        if not self.state.account:
            return None
        return Role.ADMIN if self.is_owner else Role.PLAYER

    @property
    def is_owner(self) -> bool:
        return same_address(self.state.account, self.state.owner)

    @property
    def can_buy(self) -> bool:
        return bool(self.state.contract and self.state.account and self.state.is_lottery_open)

    @property
    def can_pick_winner(self) -> bool:
        return bool(self.state.contract) and self.is_owner

    @property
    def buy_label(self) -> str:
        return "Buy Ticket" if self.state.is_lottery_open else "Calculated Winner..."

    def snapshot(self) -> Dict[str, Any]:
        state = self.state
        role = self.role
        return {
            "account": state.account,
            "connected": state.contract is not None,
            "contractAddress": getattr(state.contract, "address", None),
            "owner": state.owner,
            "role": role.value if role else None,
            "ticketPrice": state.ticket_price,
            "inputAmount": state.input_amount,
            "status": state.status,
            "balance": state.balance,
            "players": list(state.players),
            "playerCount": len(state.players),
            "lastWinner": state.last_winner,
            "hasWinner": state.last_winner != NO_WINNER,
            "isLotteryOpen": state.is_lottery_open,
            "phase": state.phase.value,
            "canBuy": self.can_buy,
            "canPickWinner": self.can_pick_winner,
            "buyLabel": self.buy_label,
            "networkName": self.network_name,
        }

    def _idle_phase(self) -> SessionPhase:
        return SessionPhase.CONNECTED_IDLE if self.state.contract is not None else SessionPhase.DISCONNECTED

    # ------------------------------------------------------------------
    # Outcome helpers
    # ------------------------------------------------------------------
    def _alert(self, action: str, message: str, error: LotteryClientError) -> ActionOutcome:
        logger.warning("%s refused: %s", action, error)
        return ActionOutcome(action, False, self.state.status, alert=message, error=error)

    def _fail(self, action: str, status: str, exc: Exception) -> ActionOutcome:
        error = exc if isinstance(exc, LotteryClientError) else RemoteCallError(str(exc) or type(exc).__name__)
        self._set(status=status, phase=SessionPhase.ERROR)
        return ActionOutcome(action, False, status, error=error)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def set_input_amount(self, amount: str) -> None:
        self._set(input_amount=str(amount))

    async def connect(self) -> ActionOutcome:
        """Authorize an account, bind the contract to it and load everything."""
        try:
            signer = await self._wallet.request_accounts()
            address = await signer.get_address()
            contract = self._contract_factory(signer)
            owner = await contract.get_owner()
        except WalletUnavailableError as exc:
            return self._alert("connect", WALLET_MISSING_ALERT, exc)
        except Exception as exc:
            logger.exception("Error connecting wallet")
            return self._fail("connect", CONNECT_ERROR_STATUS, exc)

        self._set(
            account=address,
            contract=contract,
            owner=owner,
            status=CONNECTED_STATUS,
            phase=SessionPhase.CONNECTED_IDLE,
        )
        logger.info("Connected %s (contract owner %s)", shorten_eth_address(address), shorten_eth_address(owner))

        await self.reload(contract)
        return ActionOutcome("connect", True, self.state.status)

    async def reload(self, contract: Any = None) -> ActionOutcome:
        """Refresh balance, players, last winner, open flag and ticket price.

        Each field is replaced as soon as its read returns. A failing read
        stops the refresh; fields updated before it keep their new values.
        """
        contract = contract or self.state.contract
        if contract is None:
            return ActionOutcome(
                "reload", False, self.state.status, error=PreconditionError("No contract handle")
            )

        self._set(phase=SessionPhase.LOADING)
        try:
            balance = await contract.get_balance()
            self._set(balance=format_ether(balance))

            players = await contract.get_players()
            self._set(players=list(players))

            winner = await contract.get_last_winner()
            self._set(last_winner=NO_WINNER if is_zero_address(winner) else winner)

            is_open = await contract.is_lottery_open()
            self._set(is_lottery_open=bool(is_open))

            price = format_ether(await contract.get_ticket_price())
            self._set(ticket_price=price, input_amount=price)
        except Exception as exc:
            logger.exception("Error loading info")
            return self._fail("reload", LOAD_ERROR_STATUS, exc)

        self._set(phase=self._idle_phase())
        return ActionOutcome("reload", True, self.state.status)

    async def buy_ticket(self) -> ActionOutcome:
        """Send the amount in the input field to the contract's buyTicket."""
        contract = self.state.contract
        if contract is None:
            return self._alert("buy_ticket", CONNECT_FIRST_ALERT, PreconditionError("No contract handle"))
        if not self.state.is_lottery_open:
            return self._alert("buy_ticket", LOTTERY_CLOSED_ALERT, PreconditionError("Lottery is not open"))

        amount = self.state.input_amount
        self._set(status=BUY_PENDING_STATUS, phase=SessionPhase.TX_PENDING)
        try:
            value = parse_ether(amount)
            await self._check_amount(contract, value)
            tx_hash = await contract.buy_ticket(value)
            await contract.wait_for_transaction(tx_hash, timeout=self._tx_timeout)
        except PreconditionError as exc:
            logger.warning("Ticket purchase refused: %s", exc)
            return self._fail("buy_ticket", str(exc), exc)
        except Exception as exc:
            logger.exception("Error buying ticket")
            return self._fail("buy_ticket", BUY_ERROR_STATUS.format(network=self.network_name), exc)

        logger.info("Ticket purchased for %s ETH (tx %s)", amount, tx_hash)
        self._set(status=BUY_DONE_STATUS, phase=self._idle_phase())
        await self.reload()
        return ActionOutcome("buy_ticket", True, self.state.status)

    async def _check_amount(self, contract: Any, value: int) -> None:
        if not self._revalidate_price:
            if self.state.ticket_price and value != parse_ether(self.state.ticket_price):
                logger.warning(
                    "Sending %s ETH while the last loaded ticket price is %s ETH",
                    format_ether(value),
                    self.state.ticket_price,
                )
            return

        current = int(await contract.get_ticket_price())
        if value < current:
            price = format_ether(current)
            self._set(ticket_price=price)
            raise PreconditionError(PRICE_CHANGED_STATUS.format(price=price))

    async def pick_winner(self) -> ActionOutcome:
        """Owner-only: ask the contract to start the random draw."""
        contract = self.state.contract
        if contract is None:
            return self._alert("pick_winner", CONNECT_FIRST_ALERT, PreconditionError("No contract handle"))
        if not self.is_owner:
            logger.warning("pick_winner refused: %s is not the owner %s", self.state.account, self.state.owner)
            self._set(status=NOT_OWNER_STATUS)
            return ActionOutcome(
                "pick_winner", False, NOT_OWNER_STATUS, error=PreconditionError("Caller is not the owner")
            )

        self._set(status=PICK_PENDING_STATUS, phase=SessionPhase.TX_PENDING)
        try:
            tx_hash = await contract.pick_winner()
            await contract.wait_for_transaction(tx_hash, timeout=self._tx_timeout)
        except Exception as exc:
            logger.exception("Error picking winner")
            return self._fail("pick_winner", PICK_ERROR_STATUS, exc)

        logger.info("Winner selection requested (tx %s)", tx_hash)
        self._set(status=PICK_DONE_STATUS, phase=self._idle_phase())
        # randomness resolves off-chain later, so this may still show the pre-draw state
        await self.reload()
        return ActionOutcome("pick_winner", True, self.state.status)
