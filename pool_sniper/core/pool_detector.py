"""
New pool detection.

The program feed only says "this account changed". For each change the
detector looks up the latest transaction touching that account and asks a
classifier whether it was a pool initialization.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from pool_sniper.constants import (
    INIT2_COIN_MINT_INDEX,
    INIT2_LP_MINT_INDEX,
    INIT2_MARKET_ID_INDEX,
    INIT2_MIN_ACCOUNTS,
    INIT2_PC_MINT_INDEX,
    INIT2_POOL_ID_INDEX,
    POOL_INIT_LOG_MARKERS,
    SEEN_SIGNATURE_CACHE_SIZE,
)
from pool_sniper.core.interfaces import ChainGateway, ProgramFeed
from pool_sniper.core.models import CompiledInstruction, PoolEvent, TransactionSnapshot

PoolEventHandler = Callable[[PoolEvent], Awaitable[None]]


class PoolInitClassifier(Protocol):
    def classify(self, tx: TransactionSnapshot, program_id: str) -> PoolEvent | None: ...


class LogMarkerClassifier:
    """
    Raydium AMM v4 ``initialize2`` detection.

    A transaction qualifies when its logs carry one of the init markers and
    it has an instruction for the program with the initialize2 account
    layout. The first such instruction wins.
    """

    def __init__(self, markers: tuple[str, ...] = POOL_INIT_LOG_MARKERS) -> None:
        self.markers = markers

    def has_marker(self, log_messages: list[str]) -> bool:
        return any(marker in line for line in log_messages for marker in self.markers)

    def classify(self, tx: TransactionSnapshot, program_id: str) -> PoolEvent | None:
        if not self.has_marker(tx.log_messages):
            return None

        keys = tx.account_keys
        for ix in tx.instructions:
            if not 0 <= ix.program_id_index < len(keys) or keys[ix.program_id_index] != program_id:
                continue
            event = self._extract(ix, keys, tx)
            if event is not None:
                return event
        return None

    @staticmethod
    def _extract(ix: CompiledInstruction, keys: list[str], tx: TransactionSnapshot) -> PoolEvent | None:
        if len(ix.accounts) < INIT2_MIN_ACCOUNTS:
            return None

        def key_at(slot: int) -> str | None:
            if slot >= len(ix.accounts):
                return None
            index = ix.accounts[slot]
            return keys[index] if 0 <= index < len(keys) else None

        pool_id = key_at(INIT2_POOL_ID_INDEX)
        lp_mint = key_at(INIT2_LP_MINT_INDEX)
        coin_mint = key_at(INIT2_COIN_MINT_INDEX)
        pc_mint = key_at(INIT2_PC_MINT_INDEX)
        if None in (pool_id, lp_mint, coin_mint, pc_mint):
            return None

        if tx.block_time is not None:
            timestamp = datetime.fromtimestamp(tx.block_time, tz=timezone.utc)
        else:
            timestamp = datetime.now(timezone.utc)

        return PoolEvent(
            pool_id=pool_id,
            signature=tx.signature,
            timestamp=timestamp,
            token_a_mint=coin_mint,
            token_b_mint=pc_mint,
            lp_mint=lp_mint,
            market_id=key_at(INIT2_MARKET_ID_INDEX) or "",
        )


class PoolEventDetector:
    def __init__(
        self,
        gateway: ChainGateway,
        feed: ProgramFeed,
        program_id: str,
        classifier: PoolInitClassifier | None = None,
        seen_cache_size: int = SEEN_SIGNATURE_CACHE_SIZE,
    ) -> None:
        self.gateway = gateway
        self.feed = feed
        self.program_id = program_id
        self.classifier = classifier or LogMarkerClassifier()
        self.seen_cache_size = seen_cache_size
        self.logger = logging.getLogger("pool_sniper.detector")

        self._handler: PoolEventHandler | None = None
        self._subscription: Any = None
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._subscribe_lock = asyncio.Lock()

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    async def subscribe(self, handler: PoolEventHandler) -> None:
        async with self._subscribe_lock:
            if self._subscription is not None:
                self.logger.warning("Already subscribed to %s, ignoring second subscribe", self.program_id)
                return
            self._handler = handler
            self._subscription = await self.feed.subscribe(self.program_id, self._on_notification)
        self.logger.info("🔭 Watching program %s for new pools", self.program_id)

    async def unsubscribe(self) -> None:
        async with self._subscribe_lock:
            if self._subscription is None:
                return
            subscription, self._subscription = self._subscription, None
            await self.feed.unsubscribe(subscription)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._handler = None
        self.logger.info("Stopped watching program %s", self.program_id)

    async def _on_notification(self, account: str) -> None:
        # One task per notification so a slow lookup never stalls the feed
        task = asyncio.create_task(self.process_notification(account))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def process_notification(self, account: str) -> PoolEvent | None:
        """Resolve, classify and dispatch one account change. Never raises."""
        claimed = None
        try:
            signature = await self.gateway.get_latest_signature(account)
            if signature is None:
                self.logger.debug("No signature found for %s", account)
                return None
            if signature in self._seen or signature in self._in_flight:
                return None

            self._in_flight.add(signature)
            claimed = signature
            tx = await self.gateway.get_transaction(signature)
            if tx is None:
                self.logger.debug("Transaction %s unavailable, dropping notification", signature)
                return None

            self._remember(signature)
            event = self.classifier.classify(tx, self.program_id)
            if event is None:
                return None

            self.logger.info(
                "🆕 NEW POOL %s | %s / %s | tx %s",
                event.pool_id, event.token_a_mint, event.token_b_mint, event.signature,
            )
            if self._handler is not None:
                await self._handler(event)
            return event
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.warning("Dropping notification for %s: %s", account, exc)
            return None
        finally:
            if claimed is not None:
                self._in_flight.discard(claimed)

    def _remember(self, signature: str) -> None:
        self._seen[signature] = None
        while len(self._seen) > self.seen_cache_size:
            self._seen.popitem(last=False)
