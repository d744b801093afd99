import pytest

from fakes import FakeChain, FakeWallet, OWNER, contract_factory_for
from lottery_dapp.lottery.viewmodel import LotteryViewModel


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def make_view_model(chain):
    """Build a view-model whose wallet authorizes ``address`` against ``chain``."""

    def _make(address=OWNER, error=None, config=None):
        wallet = FakeWallet(address=address, error=error)
        return LotteryViewModel(wallet, contract_factory_for(chain), config or {})

    return _make
