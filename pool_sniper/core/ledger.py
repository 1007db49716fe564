"""
Paper-trading position ledger.

Owns the virtual SOL budget and the open position set. Every mutation runs
under one asyncio lock and is mirrored to the position store in the same
critical section, so readers never observe a budget change without the
matching position change.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import replace
from typing import Callable

from pool_sniper.config.risk_config import LedgerLimits, SlippageConfig
from pool_sniper.core.interfaces import PositionStore, TradeLog
from pool_sniper.core.models import CompletedTrade, ExitReason, Position, SellResult
from pool_sniper.core.pricing import sample_slippage, sol_for_tokens, tokens_for_sol
from pool_sniper.exceptions import LedgerException, StateException
from pool_sniper.logger import TradeLogger


class PositionLedger:
    def __init__(
        self,
        store: PositionStore,
        trade_log: TradeLog,
        limits: LedgerLimits | None = None,
        slippage: SlippageConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        trade_logger: TradeLogger | None = None,
    ) -> None:
        self.store = store
        self.trade_log = trade_log
        self.limits = limits or LedgerLimits()
        self.slippage = slippage or SlippageConfig()
        self.rng = rng or random.Random()
        self.clock = clock
        self.trade_logger = trade_logger or TradeLogger()
        self.logger = logging.getLogger("pool_sniper.ledger")

        self.budget = self.limits.initial_budget_sol
        self._positions: dict[str, Position] = {}
        self._lock = asyncio.Lock()
        self._persistence_healthy = True

        # Session counters
        self.realized_pnl = 0.0
        self.total_trades = 0
        self.winning_trades = 0
        self.losing_trades = 0

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self) -> int:
        """
        Load open positions from the store and reconcile the budget.

        The budget becomes the initial budget minus the SOL committed to
        every restored position, floored at zero.
        """
        positions = self.store.load()
        self._positions = {p.token_mint: p for p in positions}
        committed = sum(p.trade_size_sol for p in positions)
        self.budget = max(0.0, self.limits.initial_budget_sol - committed)
        if positions:
            self.logger.info(
                "♻️ Restored %d position(s), %.4f SOL committed, budget %.4f SOL",
                len(positions), committed, self.budget,
            )
        return len(positions)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def persistence_healthy(self) -> bool:
        return self._persistence_healthy

    @property
    def open_count(self) -> int:
        return len(self._positions)

    def admission_failures(self, mint: str) -> list[str]:
        failures = []
        if self.budget < self.limits.trade_size_sol:
            failures.append(
                f"insufficient budget ({self.budget:.4f} SOL < {self.limits.trade_size_sol:.4f} SOL)"
            )
        if len(self._positions) >= self.limits.max_positions:
            failures.append(f"max positions reached ({len(self._positions)}/{self.limits.max_positions})")
        if mint in self._positions:
            failures.append(f"position already open for {mint}")
        return failures

    def can_buy(self, mint: str) -> bool:
        failures = self.admission_failures(mint)
        for reason in failures:
            self.logger.info("⛔ Cannot buy %s: %s", mint, reason)
        return not failures

    def snapshot(self) -> list[Position]:
        return [replace(p) for p in self._positions.values()]

    def get_position(self, mint: str) -> Position | None:
        position = self._positions.get(mint)
        return replace(position) if position else None

    def get_performance_metrics(self) -> dict:
        """Get session performance statistics."""
        win_rate = (self.winning_trades / self.total_trades * 100) if self.total_trades > 0 else 0.0
        return {
            "initial_budget": self.limits.initial_budget_sol,
            "budget": self.budget,
            "committed_sol": sum(p.trade_size_sol for p in self._positions.values()),
            "open_positions": len(self._positions),
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": win_rate,
            "realized_pnl": self.realized_pnl,
            "persistence_healthy": self._persistence_healthy,
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def buy(self, mint: str, pool_id: str, price: float) -> Position | None:
        async with self._lock:
            failures = self.admission_failures(mint)
            if failures:
                self.logger.info("⛔ Buy rejected for %s: %s", mint, "; ".join(failures))
                return None

            slippage = sample_slippage(self.slippage.buy_min, self.slippage.buy_max, self.rng)
            trade_size = self.limits.trade_size_sol
            token_amount = tokens_for_sol(trade_size, price, self.limits.fee_rate, slippage)
            if token_amount <= 0:
                self.logger.warning("Buy rejected for %s: non-positive token amount at price %s", mint, price)
                return None

            position = Position(
                token_mint=mint,
                pool_id=pool_id,
                buy_price=price,
                buy_timestamp=int(self.clock() * 1000),
                token_amount=token_amount,
                peak_price=price,
                trade_size_sol=trade_size,
            )
            self.budget = max(0.0, self.budget - trade_size)
            self._positions[mint] = position
            self._persist()

        self.trade_logger.log_buy(
            mint=mint,
            pool_id=pool_id,
            price=price,
            amount_sol=trade_size,
            token_amount=token_amount,
            slippage=slippage,
            budget_after=self.budget,
        )
        return replace(position)

    async def sell(self, position: Position, price: float, reason: ExitReason) -> SellResult | None:
        async with self._lock:
            current = self._positions.get(position.token_mint)
            if current is None:
                self.logger.error("Sell ignored for %s: no open position", position.token_mint)
                return None

            slippage = sample_slippage(self.slippage.sell_min, self.slippage.sell_max, self.rng)
            proceeds = sol_for_tokens(current.token_amount, price, self.limits.fee_rate, slippage)
            if proceeds < 0:
                error = LedgerException(
                    "Negative sell proceeds", mint=current.token_mint, price=price, proceeds=proceeds
                )
                self.logger.error("Sell aborted: %s", error)
                return None

            trade = CompletedTrade.from_position(
                current,
                sell_price=price,
                sol_proceeds=proceeds,
                exit_reason=reason,
                sell_timestamp=int(self.clock() * 1000),
            )
            self.budget += proceeds
            del self._positions[current.token_mint]
            self._persist()
            self._record_trade(trade)

        self.trade_logger.log_sell(
            mint=trade.token_mint,
            price=price,
            sol_proceeds=proceeds,
            pnl_sol=trade.profit_or_loss,
            reason=reason.value,
            slippage=slippage,
            budget_after=self.budget,
        )
        return SellResult(sol_proceeds=proceeds, profit_or_loss=trade.profit_or_loss, trade=trade)

    async def update_peak(self, mint: str, price: float) -> bool:
        """Raise the stored peak if ``price`` is higher. Returns True when it changed."""
        async with self._lock:
            position = self._positions.get(mint)
            if position is None:
                self.logger.warning("Peak update ignored for %s: no open position", mint)
                return False
            if price <= position.peak_price:
                return False

            position.peak_price = price
            self._persist()
            self.logger.debug("📈 New peak for %s: %.10f", mint, price)
            return True

    # ------------------------------------------------------------------
    # Internals (called with the lock held)
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        try:
            self.store.save(list(self._positions.values()))
        except StateException as exc:
            self._persistence_healthy = False
            self.logger.error("PERSISTENCE FAILURE: %s", exc)
        else:
            if not self._persistence_healthy:
                self.logger.info("Persistence recovered")
            self._persistence_healthy = True

    def _record_trade(self, trade: CompletedTrade) -> None:
        self.total_trades += 1
        self.realized_pnl += trade.profit_or_loss
        if trade.profit_or_loss > 0:
            self.winning_trades += 1
        else:
            self.losing_trades += 1

        try:
            self.trade_log.append(trade)
        except StateException as exc:
            self._persistence_healthy = False
            self.logger.error("PERSISTENCE FAILURE: %s", exc)
