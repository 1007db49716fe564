from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from pool_sniper.config.risk_config import ExitRules
from pool_sniper.core.ledger import PositionLedger
from pool_sniper.core.models import ExitReason, Position, SellResult

PriceFetcher = Callable[[str], Awaitable["float | None"]]


def decide_exit(position: Position, current_price: float, now_ms: int, rules: ExitRules) -> ExitReason | None:
    """
    Tiered exit rules, first match wins:

    1. profit target: gain from buy price reached ``profit_target``
    2. trailing stop: peak cleared the target and price fell ``trailing_stop`` below it
    3. time limit: held for ``time_limit_minutes`` or longer
    """
    if position.buy_price > 0:
        gain = (current_price - position.buy_price) / position.buy_price
        if gain >= rules.profit_target:
            return ExitReason.PROFIT_TARGET

    if position.trailing_armed(rules.profit_target):
        if current_price < position.peak_price * (1 - rules.trailing_stop):
            return ExitReason.TRAILING_STOP

    elapsed_minutes = (now_ms - position.buy_timestamp) / 60_000
    if elapsed_minutes >= rules.time_limit_minutes:
        return ExitReason.TIME_LIMIT

    return None


class ExitStrategyEngine:
    def __init__(
        self,
        ledger: PositionLedger,
        price_fetcher: PriceFetcher,
        rules: ExitRules | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self.price_fetcher = price_fetcher
        self.rules = rules or ExitRules()
        self.clock = clock
        self.logger = logging.getLogger("pool_sniper.exit")

    def decide_exit(self, position: Position, current_price: float, now_ms: int | None = None) -> ExitReason | None:
        if now_ms is None:
            now_ms = int(self.clock() * 1000)
        return decide_exit(position, current_price, now_ms, self.rules)

    async def evaluate_position(self, position: Position) -> SellResult | None:
        try:
            price = await self.price_fetcher(position.pool_id)
        except Exception as exc:
            self.logger.warning("Price lookup failed for %s: %s", position.token_mint, exc)
            price = None
        if price is None or price <= 0:
            self.logger.warning("No usable price for %s (pool %s), skipping", position.token_mint, position.pool_id)
            return None

        await self.ledger.update_peak(position.token_mint, price)
        current = self.ledger.get_position(position.token_mint)
        if current is None:
            return None

        reason = self.decide_exit(current, price)
        change_pct = (price / current.buy_price - 1) * 100 if current.buy_price > 0 else 0.0
        if reason is None:
            self.logger.debug(
                "HOLD %s @ %.10f (%+.2f%%, peak %.10f, trailing %s)",
                current.token_mint, price, change_pct, current.peak_price,
                "armed" if current.trailing_armed(self.rules.profit_target) else "off",
            )
            return None

        self.logger.info("🚪 EXIT %s: %s @ %.10f (%+.2f%%)", current.token_mint, reason.value, price, change_pct)
        return await self.ledger.sell(current, price, reason)

    async def run_cycle(self) -> list[SellResult]:
        """Evaluate every position in a point-in-time snapshot."""
        results = []
        for position in self.ledger.snapshot():
            result = await self.evaluate_position(position)
            if result is not None:
                results.append(result)
        return results

    async def run(self, stop_event: asyncio.Event) -> None:
        self.logger.info("Exit monitor started (every %ss)", self.rules.check_interval_seconds)
        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception as exc:
                self.logger.error("Exit cycle failed: %s", exc, exc_info=True)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.rules.check_interval_seconds)
            except asyncio.TimeoutError:
                pass
        self.logger.info("Exit monitor stopped")
