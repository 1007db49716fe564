"""
Capability protocols consumed by the detector, qualifier, ledger and exit engine.

Concrete implementations live in ``rpc_client`` (chain lookups),
``program_listener`` (account change feed) and ``state_store``
(persistence). Tests substitute small in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from pool_sniper.core.models import (
    CompletedTrade,
    MintInfo,
    PoolReserves,
    Position,
    TransactionSnapshot,
)

NotificationCallback = Callable[[str], Awaitable[None]]


class ChainGateway(Protocol):
    """Read-only chain lookups. Every method returns None on failure."""

    async def get_latest_signature(self, address: str) -> str | None: ...

    async def get_transaction(self, signature: str) -> TransactionSnapshot | None: ...

    async def get_mint_info(self, mint: str) -> MintInfo | None: ...

    async def get_pool_reserves(self, pool_id: str) -> PoolReserves | None: ...

    async def get_current_price(self, pool_id: str) -> float | None: ...


class ProgramFeed(Protocol):
    """Account change notifications for every account owned by a program."""

    async def subscribe(self, program_id: str, notify: NotificationCallback) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...


class PositionStore(Protocol):
    def load(self) -> list[Position]: ...

    def save(self, positions: list[Position]) -> None: ...


class TradeLog(Protocol):
    def append(self, trade: CompletedTrade) -> None: ...
