"""Shared fakes for the pool sniper tests."""

import pytest

from pool_sniper.config.risk_config import LedgerLimits, SlippageConfig
from pool_sniper.core.ledger import PositionLedger
from pool_sniper.core.state_store import JsonlTradeLog, JsonPositionStore
from pool_sniper.exceptions import StateException


class MemoryStore:
    """In-memory PositionStore that records every save."""

    def __init__(self, initial=None):
        self.positions = list(initial or [])
        self.saves = []
        self.fail = False

    def load(self):
        return list(self.positions)

    def save(self, positions):
        if self.fail:
            raise StateException("disk full")
        self.positions = list(positions)
        self.saves.append([p.token_mint for p in positions])


class MemoryTradeLog:
    def __init__(self):
        self.trades = []

    def append(self, trade):
        self.trades.append(trade)


class FakeGateway:
    """ChainGateway backed by dicts."""

    def __init__(self):
        self.signatures = {}
        self.transactions = {}
        self.mint_infos = {}
        self.reserves = {}
        self.prices = {}
        self.calls = []

    async def check_connection(self):
        return "1.18.0"

    async def get_latest_signature(self, address):
        self.calls.append(("signature", address))
        value = self.signatures.get(address)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_transaction(self, signature):
        self.calls.append(("transaction", signature))
        return self.transactions.get(signature)

    async def get_mint_info(self, mint):
        self.calls.append(("mint", mint))
        return self.mint_infos.get(mint)

    async def get_pool_reserves(self, pool_id):
        self.calls.append(("reserves", pool_id))
        return self.reserves.get(pool_id)

    async def get_current_price(self, pool_id):
        self.calls.append(("price", pool_id))
        value = self.prices.get(pool_id)
        if isinstance(value, list):
            return value.pop(0) if value else None
        return value


class ZeroSlippageRng:
    """random.Random stand-in whose uniform() returns the low bound."""

    def uniform(self, low, high):
        return low


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def trade_log():
    return MemoryTradeLog()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    """Mutable epoch-seconds clock: set ``clock.now``."""
    class Clock:
        now = 1_700_000_000.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def zero_rng():
    return ZeroSlippageRng()


@pytest.fixture
def ledger(memory_store, trade_log, clock):
    return PositionLedger(
        memory_store,
        trade_log,
        limits=LedgerLimits(initial_budget_sol=1.0, trade_size_sol=0.1, max_positions=5, fee_rate=0.0025),
        slippage=SlippageConfig(),
        rng=ZeroSlippageRng(),
        clock=clock,
    )


@pytest.fixture
def file_store(tmp_path):
    return JsonPositionStore(tmp_path / "active_trades.json")


@pytest.fixture
def file_trade_log(tmp_path):
    return JsonlTradeLog(tmp_path / "completed_trades.jsonl")
