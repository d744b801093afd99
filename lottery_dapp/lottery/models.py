"""Core data models for the lottery dApp view-model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

INITIAL_STATUS = "Awaiting wallet connection..."
NO_WINNER = "None"


class SessionPhase(Enum):
    """Coarse state of the user session, derived from which data is present."""

    DISCONNECTED = "disconnected"
    CONNECTED_IDLE = "connected-idle"
    LOADING = "loading"
    TX_PENDING = "tx-pending"
    ERROR = "error"


class Role(Enum):
    ADMIN = "ADMIN"
    PLAYER = "PLAYER"


class LotteryClientError(Exception):
    """Base class for failures surfaced by the view-model handlers."""

    kind = "remote"


class WalletUnavailableError(LotteryClientError):
    """No wallet provider is reachable from this environment."""

    kind = "environment"


class WalletAuthorizationError(LotteryClientError):
    """The wallet declined to expose an account."""

    kind = "authorization"


class PreconditionError(LotteryClientError):
    """An action was attempted without the state it requires."""

    kind = "precondition"


class RemoteCallError(LotteryClientError):
    """A read or write against the wallet or contract failed."""

    kind = "remote"


@dataclass
class LotteryViewState:
    """Everything the page renders. Fields are replaced independently."""

    account: Optional[str] = None
    contract: Optional[Any] = None
    ticket_price: str = ""
    input_amount: str = ""
    status: str = INITIAL_STATUS
    balance: str = "0"
    players: List[str] = field(default_factory=list)
    last_winner: str = NO_WINNER
    owner: Optional[str] = None
    is_lottery_open: bool = True
    phase: SessionPhase = SessionPhase.DISCONNECTED


@dataclass
class ActionOutcome:
    """Result of one handler invocation."""

    action: str
    ok: bool
    status: str
    alert: Optional[str] = None
    error: Optional[LotteryClientError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None
